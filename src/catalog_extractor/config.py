"""Runtime configuration for extraction runs."""

import os

from pydantic import BaseModel, Field

DEFAULT_CONCURRENCY_LIMIT = 3
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0
# 1.5x of the 72 DPI base keeps small price text legible without huge uploads
DEFAULT_RENDER_SCALE = 1.5


class PipelineConfig(BaseModel):
    """Tunables for the extraction pipeline.

    concurrency_limit should stay within the inference service's rate-limit
    headroom: it caps how many requests are in flight at once.
    """

    concurrency_limit: int = Field(default=DEFAULT_CONCURRENCY_LIMIT, ge=1, le=32)
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1, le=10)
    base_delay: float = Field(default=DEFAULT_BASE_DELAY_SECONDS, ge=0)
    retry_jitter: float = Field(default=0.0, ge=0)
    render_scale: float = Field(default=DEFAULT_RENDER_SCALE, gt=0, le=6)

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """Build a config from EXTRACT_* environment variables.

        Keyword overrides that are not None take precedence over the environment.
        """
        env_map = {
            "concurrency_limit": "EXTRACT_CONCURRENCY",
            "max_attempts": "EXTRACT_MAX_ATTEMPTS",
            "base_delay": "EXTRACT_BASE_DELAY",
            "retry_jitter": "EXTRACT_RETRY_JITTER",
            "render_scale": "EXTRACT_RENDER_SCALE",
        }
        values = {}
        for field_name, env_var in env_map.items():
            raw = os.getenv(env_var)
            if raw not in (None, ""):
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
