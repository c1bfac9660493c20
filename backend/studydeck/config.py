from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / ".studydeck" / "data"
    sqlite_filename: str = "studydeck.db"
    chromadb_dirname: str = "chroma"
    files_dirname: str = "files"
    log_level: str = "info"
    host: str = "127.0.0.1"
    port: int = 8000

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 100

    # Hosted AI gateway (OpenAI-compatible)
    ai_base_url: str = "https://ai.gateway.lovable.dev/v1"
    ai_api_key: str = ""
    ai_timeout: float = 120.0
    flashcard_model: str = "google/gemini-2.5-flash"
    mcq_model: str = "google/gemini-2.5-pro"
    concept_model: str = "google/gemini-2.5-flash"
    embedding_model: str = "text-embedding-ada-002"

    max_source_chunks: int = 20
    concept_context_chars: int = 15000

    model_config = {"env_prefix": "STUDYDECK_"}


settings = Settings()
