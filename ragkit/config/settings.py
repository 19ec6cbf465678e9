"""Application settings loaded from environment variables via pydantic-settings.

Field names map to upper-case environment variables (``openai_api_key`` ->
``OPENAI_API_KEY``).  Environment variables win over the ``.env`` file,
which wins over the defaults below.  An empty credential means "not
configured"; the factories refuse to build a provider that needs it.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ragkit runtime settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Provider selection ===
    embedding_provider: str = "ollama"
    llm_provider: str = "openai"

    # === Credentials ===
    openai_api_key: str = ""
    openai_organization: str = ""
    anthropic_api_key: str = ""
    google_api_key: str = ""

    # === Endpoints ===
    openai_base_url: str = ""  # OpenAI-compatible APIs (TogetherAI, Groq, vLLM)
    anthropic_base_url: str = ""
    google_base_url: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # === Models ===
    openai_embedding_model: str = "text-embedding-3-small"
    openai_embedding_dimensions: int = 1536
    ollama_embedding_model: str = "nomic-embed-text"
    ollama_embedding_dimensions: int = 768
    ollama_embedding_batch_size: int = 32
    openai_llm_model: str = "gpt-4o-mini"
    anthropic_llm_model: str = "claude-3-5-sonnet-20241022"
    google_llm_model: str = "gemini-1.5-flash"
    ollama_llm_model: str = "llama3.2"

    # === Resilience ===
    provider_max_retries: int = 3
    provider_retry_delay_ms: int = 1000
    embedding_timeout_ms: int = 30_000
    ollama_embedding_timeout_ms: int = 60_000
    llm_timeout_ms: int = 60_000
    ollama_llm_timeout_ms: int = 120_000

    # === Embedding cache ===
    embedding_cache_enabled: bool = True
    embedding_cache_max_size: int = 10_000
    embedding_cache_ttl_seconds: int = 86_400

    # === Storage ===
    chromadb_persist_dir: str = "./data/chromadb"
    upload_dir: str = "./data/uploads"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the LLM providers that have the credentials they need."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.google_api_key:
            providers.append("google")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
