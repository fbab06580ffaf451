"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DEFAULT_SEARCH_URL = "http://localhost:9200"
DEFAULT_TRACES_INDEX = ".ds-traces-*,traces*,*traces*,otel-traces*"
DEFAULT_LOGS_INDEX = ".ds-logs-*,logs*,*logs*,otel-logs*"
DEFAULT_METRICS_INDEX = ".ds-metrics-*,metrics*,*metrics*,otel-metrics*"


PathLike = Union[str, Path]


def resolve_log_path(env_value: PathLike | None = None) -> Path:
    """Resolve LOG_FILE to an absolute path."""
    if not env_value:
        return DEFAULT_LOG_PATH

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


@dataclass
class BackendSettings:
    """Connection and index settings for the search backend."""

    url: str = DEFAULT_SEARCH_URL
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    traces_index: str = DEFAULT_TRACES_INDEX
    logs_index: str = DEFAULT_LOGS_INDEX
    metrics_index: str = DEFAULT_METRICS_INDEX
    page_size: int = 5000
    max_pages: int = 100

    @classmethod
    def from_env(cls) -> "BackendSettings":
        """Build settings from environment variables."""
        return cls(
            url=_first_env("ELASTICSEARCH_URL", "OPENSEARCH_URL") or DEFAULT_SEARCH_URL,
            api_key=_first_env("ELASTICSEARCH_API_KEY", "API_KEY"),
            username=_first_env("ELASTICSEARCH_USERNAME", "OPENSEARCH_USERNAME"),
            password=_first_env("ELASTICSEARCH_PASSWORD", "OPENSEARCH_PASSWORD"),
            timeout=float(os.getenv("SEARCH_TIMEOUT", "30")),
            max_retries=int(os.getenv("SEARCH_MAX_RETRIES", "3")),
            retry_delay=float(os.getenv("SEARCH_RETRY_DELAY", "1.0")),
            traces_index=os.getenv("TRACES_INDEX", DEFAULT_TRACES_INDEX),
            logs_index=os.getenv("LOGS_INDEX", DEFAULT_LOGS_INDEX),
            metrics_index=os.getenv("METRICS_INDEX", DEFAULT_METRICS_INDEX),
            page_size=int(os.getenv("DEPENDENCY_PAGE_SIZE", "5000")),
            max_pages=int(os.getenv("DEPENDENCY_MAX_PAGES", "100")),
        )
