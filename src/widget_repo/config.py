import os
from typing import Mapping

from pydantic import BaseModel, Field

ENV_PREFIX = "WIDGET_REPO_"


class RepoConfig(BaseModel):
    """Connection settings accepted by `sqlite_repo_factory`."""

    db_path: str = ":memory:"
    pool_size: int = Field(default=10, ge=1)
    cache_size_kib: int = -16384  # Negative means KiB, so 16MB
    busy_timeout_ms: int = Field(default=5000, ge=0)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RepoConfig":
        """Builds a config from `WIDGET_REPO_*` variables, falling back to defaults."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        return cls.model_validate(values)
