"""
Client configuration read from the environment or a ``meilipoll.env`` file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from meilipoll.dto.wait import DEFAULT_WAIT_INTERVAL, DEFAULT_WAIT_TIMEOUT, WaitOptions

MEILIPOLL_ENV_FILENAME = "meilipoll.env"


class ClientConfig(BaseSettings):
    """
    Settings model for client configuration via environment variables
    or other settings sources supported by `pydantic-settings`.

    Every variable is prefixed with ``MEILIPOLL_``, e.g. ``MEILIPOLL_SERVER_ADDRESS``.
    """

    SERVER_ADDRESS: Optional[str] = None
    API_KEY: Optional[SecretStr] = None

    RETRY_COUNT: int = Field(default=3, ge=1)
    RETRY_SLEEP_SEC: float = Field(default=1.0, ge=0)
    REQUEST_TIMEOUT: float = Field(default=60.0, gt=0)

    WAIT_TIMEOUT: Optional[float] = DEFAULT_WAIT_TIMEOUT
    WAIT_INTERVAL: float = Field(default=DEFAULT_WAIT_INTERVAL, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="MEILIPOLL_",
        env_file=(str(Path.home() / MEILIPOLL_ENV_FILENAME), MEILIPOLL_ENV_FILENAME),
        extra="ignore",
    )

    def api_key(self) -> Optional[str]:
        return self.API_KEY.get_secret_value() if self.API_KEY is not None else None

    def wait_options(self) -> WaitOptions:
        return WaitOptions(timeout=self.WAIT_TIMEOUT, interval=self.WAIT_INTERVAL)

    def validate_credentials(self) -> None:
        """Raise ValueError if the server address is missing."""
        if not self.SERVER_ADDRESS:
            raise ValueError("MEILIPOLL_SERVER_ADDRESS must be set in environment variables.")
