"""Unit tests for the worker process shutdown path."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from ragkit.main import shutdown


class TestShutdown:
    @pytest.mark.asyncio
    async def test_stops_worker_and_closes_provider_clients(self) -> None:
        container = {
            "worker": MagicMock(),
            "embedding_factory": AsyncMock(),
            "llm_factory": AsyncMock(),
        }

        await shutdown(container)

        container["worker"].stop.assert_called_once()
        container["embedding_factory"].aclose.assert_awaited_once()
        container["llm_factory"].aclose.assert_awaited_once()
