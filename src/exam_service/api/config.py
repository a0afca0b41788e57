from pathlib import Path

from pydantic_settings import BaseSettings

EXAM_ENV_PREFIX = "EXAM_"


class ServiceSettings(BaseSettings):
    model_config = {"env_prefix": EXAM_ENV_PREFIX}

    host: str = "127.0.0.1"
    port: int = 8000

    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com"
    temperature: float = 0.6
    max_output_tokens: int = 3500
    request_timeout_seconds: float = 60.0

    batch_size: int = 10
    cache_ttl_seconds: int = 900
    rate_limit: int = 30
    rate_window_seconds: int = 60

    data_dir: Path | None = None
    max_concurrent_jobs: int = 4
