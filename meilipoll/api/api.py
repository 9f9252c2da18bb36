from pathlib import Path
from typing import List, Optional, Union

import httpx

from meilipoll.api._api import _Api
from meilipoll.api.document_api import DocumentApi
from meilipoll.api.index_api import IndexApi
from meilipoll.api.task_api import TaskApi
from meilipoll.dto.wait import WaitOptions
from meilipoll.errors import MeiliPollError
from meilipoll.io.credentials import ClientConfig


class Api(_Api):

    def __init__(
        self,
        server_address: str,
        api_key: Optional[str] = None,
        retry_count: int = 3,
        retry_sleep_sec: float = 1.0,
        request_timeout: float = 60.0,
        wait_options: Optional[WaitOptions] = None,
        client_agents: Optional[List[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            server_address=server_address,
            api_key=api_key,
            retry_count=retry_count,
            retry_sleep_sec=retry_sleep_sec,
            request_timeout=request_timeout,
            client_agents=client_agents,
            transport=transport,
        )

        self.tasks = TaskApi(self, wait_options)
        self.indexes = IndexApi(self)
        self.documents = DocumentApi(self)

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs) -> "Api":
        config.validate_credentials()
        return cls(
            server_address=config.SERVER_ADDRESS,
            api_key=config.api_key(),
            retry_count=config.RETRY_COUNT,
            retry_sleep_sec=config.RETRY_SLEEP_SEC,
            request_timeout=config.REQUEST_TIMEOUT,
            wait_options=config.wait_options(),
            **kwargs,
        )

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None, **kwargs) -> "Api":
        """Create API client from environment variables (and ``~/meilipoll.env``)."""
        from meilipoll.io.env import load_env

        return cls.from_config(load_env(env_file), **kwargs)

    def is_healthy(self) -> bool:
        try:
            response = self.get("health", retries=1)
        except MeiliPollError:
            return False
        return response.json().get("status") == "available"
