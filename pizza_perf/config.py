"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass

from pizza_perf.constants import DEFAULT_BASE_URL


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    base_url: str = DEFAULT_BASE_URL
    log_level: str = "INFO"
    strict_setup: bool = False
    request_timeout: float = 60.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``BASE_URL``, ``LOG_LEVEL``, ``STRICT_SETUP`` and ``REQUEST_TIMEOUT``.

        Raises:
            ValueError: If ``REQUEST_TIMEOUT`` is not a positive number.
        """
        timeout = float(os.getenv("REQUEST_TIMEOUT", "60"))
        if timeout <= 0:
            raise ValueError(f"REQUEST_TIMEOUT must be > 0, got {timeout}")
        return cls(
            base_url=os.getenv("BASE_URL", DEFAULT_BASE_URL),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            strict_setup=_env_flag("STRICT_SETUP"),
            request_timeout=timeout,
        )
