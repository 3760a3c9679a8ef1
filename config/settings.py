"""Configuration settings for Design Review Copilot."""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ollama LLM settings
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "qwen2.5:7b-instruct"
    ollama_temperature: float = 0.1  # Low temperature for expert reviews
    synthesis_temperature: float = 0.2
    ollama_num_predict: int = 2048
    llm_timeout_ms: int = 30000  # Per-call budget for reviewer and synthesis calls

    # Embedding settings
    embedding_model: str = "BAAI/bge-small-en-v1.5"
    embedding_device: str = "cpu"  # "cpu" or "cuda" for GPU acceleration
    embedding_normalize: bool = True  # Normalize embeddings for cosine similarity

    # Chunking settings (characters)
    chunk_size: int = 1000
    chunk_overlap: int = 200
    preserve_sections: bool = True

    # Retrieval store
    retrieval_max_capacity: int = 10000
    retrieval_target_watermark: int = 8000  # Size after eviction
    retrieval_top_k: int = 3  # Passages per reviewer query
    procedure_top_k: int = 4  # Passages per procedure question
    collection_name: str = "procedure_chunks"

    # Review history
    review_storage_dir: str = "./review_runs"
    persistence_enabled: bool = True

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def _check_limits(self) -> "Settings":
        if self.llm_timeout_ms <= 0:
            raise ValueError("llm_timeout_ms must be a positive number")
        if not 0 < self.retrieval_target_watermark <= self.retrieval_max_capacity:
            raise ValueError(
                "retrieval_target_watermark must be positive and not exceed retrieval_max_capacity"
            )
        return self


# Global settings instance
settings = Settings()
