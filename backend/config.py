"""
Configuration management for the PaperGraph backend.
"""

from functools import lru_cache
from typing import Literal, List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "postgresql://localhost:5432/papergraph"
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_command_timeout: float = 30.0
    db_health_cache_ttl: float = 15.0  # seconds

    # LLM Providers
    ollama_base_url: str = "http://localhost:11434"
    anthropic_api_key: str = ""
    openai_api_key: str = ""

    # Default LLM Configuration
    # Ollama runs locally and needs no key, so it is the default backend.
    default_llm_provider: Literal["ollama", "openai", "anthropic"] = "ollama"
    default_llm_model: str = "llama3.1:8b"
    llm_max_tokens: int = 4096
    llm_timeout: float = 120.0

    # Structured completion retry policy
    completion_max_attempts: int = 2
    completion_retry_delay: float = 1.0  # seconds before the first retry
    completion_retry_multiplier: float = 1.0

    # Pipeline temperatures
    extraction_temperature: float = 0.3
    resolution_temperature: float = 0.3
    validation_temperature: float = 0.3

    # Chunking
    chunk_size: int = 2000
    chunk_overlap: int = 200
    chunk_delay_seconds: float = 1.0  # pacing between chunks

    # Graph sampling for prompts
    existing_node_sample: int = 1000
    resolution_prompt_nodes: int = 100
    context_node_sample: int = 50

    # Validation / mutation
    min_edge_confidence: float = 0.4
    validation_accept_on_failure: bool = False
    evidence_max_chars: int = 500
    name_similarity_threshold: float = 0.85

    # Traversal
    subgraph_max_depth: int = 3

    # PDF download
    pdf_fetch_max_attempts: int = 3
    pdf_fetch_base_delay: float = 1.0
    pdf_fetch_timeout: float = 60.0
    arxiv_pdf_base_url: str = "https://arxiv.org/pdf"

    # CORS - comma-separated list of allowed origins
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Debug
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_settings(self) -> List[str]:
        """
        Validate required settings for production.
        Returns list of missing/invalid setting names.
        """
        missing = []

        if not self.database_url or self.database_url == "postgresql://localhost:5432/papergraph":
            if self.environment == "production":
                missing.append("DATABASE_URL")

        provider_key_map = {
            "ollama": self.ollama_base_url,
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
        }
        if not provider_key_map.get(self.default_llm_provider):
            missing.append(
                f"{self.default_llm_provider.upper()} credentials "
                f"(DEFAULT_LLM_PROVIDER={self.default_llm_provider})"
            )

        if self.chunk_overlap >= self.chunk_size:
            missing.append("CHUNK_OVERLAP (must be smaller than CHUNK_SIZE)")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
