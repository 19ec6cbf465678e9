"""Queue-driven processing pipeline (uploaded -> parse -> chunk -> embed)."""

from ragkit.pipeline.job_worker import (
    DEFAULT_STAGE_POLICIES,
    JobWorker,
    StagePolicy,
    stage_policies_from_config,
)

__all__ = [
    "DEFAULT_STAGE_POLICIES",
    "JobWorker",
    "StagePolicy",
    "stage_policies_from_config",
]
