"""
Helpers for loading Meilipoll environment configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from meilipoll.io.credentials import MEILIPOLL_ENV_FILENAME, ClientConfig


def default_env_path() -> Path:
    return Path.home() / MEILIPOLL_ENV_FILENAME


def load_env(path: Optional[Path] = None) -> ClientConfig:
    """
    Load ``path`` (default ``~/meilipoll.env``) into ``os.environ`` without overriding
    variables that are already set, then read the client configuration.
    """
    env_path = Path(path) if path is not None else default_env_path()
    if env_path.is_file():
        load_dotenv(env_path, override=False)
    return ClientConfig()
