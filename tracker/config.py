"""
Bhakti Tracker - Client Configuration
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class SyncConfig:
    """Configuration for the offline-first sync engine."""

    # API settings
    api_base_url: str = "http://localhost:3000"
    request_timeout: float = 5.0  # Slower responses count as unreachable

    # Retry settings
    max_attempts: int = 6
    base_retry_delay: float = 1.0  # Delay before retry n is base * 2^n
    max_retry_delay: float = 30.0
    max_queue_size: int = 1000

    # Local store settings
    data_dir: Path = field(default_factory=lambda: Path.home() / ".bhakti_tracker")
    db_name: str = "bhakti.db"

    def __post_init__(self):
        """Ensure data directory exists."""
        self.api_base_url = self.api_base_url.rstrip("/")
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def db_path(self) -> Path:
        """Full path to the local store database."""
        return self.data_dir / self.db_name

    @classmethod
    def from_env(cls, **overrides) -> "SyncConfig":
        """Build a config from BHAKTI_* environment variables."""
        values = {}
        if os.environ.get("BHAKTI_API_URL"):
            values["api_base_url"] = os.environ["BHAKTI_API_URL"]
        if os.environ.get("BHAKTI_DATA_DIR"):
            values["data_dir"] = Path(os.environ["BHAKTI_DATA_DIR"])
        if os.environ.get("BHAKTI_REQUEST_TIMEOUT"):
            values["request_timeout"] = float(os.environ["BHAKTI_REQUEST_TIMEOUT"])
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
