"""Application configuration via environment variables."""

from typing import List, Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # State store
    store_backend: Literal["memory", "file", "supabase"] = "memory"
    store_path: str = "pagebrief_state.json"

    # Supabase (only when store_backend=supabase)
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_state_table: str = "job_state"

    # Capability providers
    provider_mode: Literal["local", "http"] = "local"
    provider_base_url: str = "http://localhost:8080"
    provider_timeout_seconds: float = 120.0

    # Job processing
    min_input_chars: int = 100
    stale_job_seconds: int = 600  # in-flight records older than this are abandoned

    # API
    api_port: int = 8001
    sse_keepalive_seconds: float = 15.0
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
