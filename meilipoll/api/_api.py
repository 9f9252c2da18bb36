# coding: utf-8
"""HTTP connection to the search engine server."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

import httpx
import requests

from meilipoll import __version__
from meilipoll.io.decorators import on_bg_loop
from meilipoll.io.network_exceptions import (
    process_requests_exception,
    process_requests_exception_async,
    process_unhandled_request,
)
from meilipoll.io.url import join_url, normalize_host

CLIENT_AGENT_HEADER = "X-Meilisearch-Client"
PACKAGE_AGENT = f"Meilipoll Python (v{__version__})"

logger = logging.getLogger(__name__)

JsonBody = Union[Dict[str, Any], list, None]


class _Api:
    """
    Connection to the server which allows user to communicate with it.

    Synchronous calls go through ``requests``; the asynchronous ones (used by task
    polling) go through a lazily created ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        server_address: str,
        api_key: Optional[str] = None,
        retry_count: int = 3,
        retry_sleep_sec: float = 1.0,
        request_timeout: float = 60.0,
        client_agents: Optional[list] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._server_address = normalize_host(server_address)
        self._api_key = api_key

        self._headers = {"Content-Type": "application/json"}
        if self._api_key:
            self._headers["Authorization"] = f"Bearer {self._api_key}"
        agents = list(client_agents or []) + [PACKAGE_AGENT]
        self._headers[CLIENT_AGENT_HEADER] = " ; ".join(agents)
        self._additional_headers: Dict[str, str] = {}

        # logger
        self.logger = logger

        # retry settings
        if retry_count < 1:
            raise ValueError("retry_count must be at least 1")
        self._retry_count = retry_count
        self._retry_sleep_sec = retry_sleep_sec
        self._request_timeout = request_timeout

        # httpx client
        self._async_httpx_client: Optional[httpx.AsyncClient] = None
        self._transport = transport

    @property
    def server_address(self) -> str:
        return self._server_address

    @property
    def headers(self) -> Dict[str, str]:
        return {**self._headers, **self._additional_headers}

    def add_header(self, key: str, value: str) -> None:
        self._additional_headers[key] = value

    def pop_header(self, key: str) -> str:
        """ """
        if key not in self._additional_headers:
            raise KeyError(f"Header {key!r} not found")
        return self._additional_headers.pop(key)

    def _prepare_url(self, method: str) -> str:
        """
        Prepares the API endpoint URL.
        """
        return join_url(self._server_address, method)

    def _sleep_sec(self, retry_idx: int) -> float:
        return min(self._retry_sleep_sec * (2**retry_idx), 60)

    # --- requests -------------------------------------------------

    def request(
        self,
        http_method: str,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        data: JsonBody = None,
        retries: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """
        Performs a request to server with given parameters.

        :param http_method: HTTP verb, e.g. ``"GET"``.
        :type http_method: str
        :param method: Endpoint path relative to the server address, e.g. ``"indexes"``.
        :type method: str
        :param params: URL query parameters. ``None`` values are dropped.
        :type params: dict, optional
        :param data: JSON body.
        :type data: dict or list, optional
        :param retries: The number of attempts to connect to the server.
        :type retries: int, optional
        :return: Response object
        :rtype: :class:`Response<Response>`
        :raises ApiError: the server answered with an error body.
        :raises CommunicationError: the server could not be reached or answered garbage.
        """
        if retries is None:
            retries = self._retry_count
        if retries < 1:
            raise ValueError(f"retries must be at least 1, got {retries}")

        url = self._prepare_url(method)
        logger.info(f"{http_method} {url}")
        if headers is not None:
            headers = {**self.headers, **headers}
        else:
            headers = self.headers
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}

        for retry_idx in range(retries):
            response = None
            try:
                response = requests.request(
                    http_method,
                    url,
                    params=params,
                    json=data,
                    headers=headers,
                    timeout=self._request_timeout,
                )
                if not response.ok:
                    _Api._raise_for_status(response)
                return response
            except requests.RequestException as exc:
                process_requests_exception(
                    self.logger,
                    exc,
                    method,
                    url,
                    verbose=True,
                    swallow_exc=True,
                    sleep_sec=self._sleep_sec(retry_idx),
                    response=response,
                    retry_info={"retry_idx": retry_idx + 1, "retry_limit": retries},
                )
            except Exception as exc:
                process_unhandled_request(self.logger, exc, url)
        raise AssertionError("unreachable: the last attempt either returns or raises")

    def get(
        self, method: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> requests.Response:
        return self.request("GET", method, params=params, **kwargs)

    def post(
        self, method: str, data: JsonBody = None, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> requests.Response:
        return self.request("POST", method, params=params, data=data, **kwargs)

    def put(
        self, method: str, data: JsonBody = None, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> requests.Response:
        return self.request("PUT", method, params=params, data=data, **kwargs)

    def patch(
        self, method: str, data: JsonBody = None, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> requests.Response:
        return self.request("PATCH", method, params=params, data=data, **kwargs)

    def delete(
        self, method: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> requests.Response:
        return self.request("DELETE", method, params=params, **kwargs)

    @staticmethod
    def _raise_for_status(response: requests.Response):
        """
        Raise error and show message with error code if given response can not connect to server.
        :param response: Request class object
        """
        http_error_msg = ""
        if isinstance(response.reason, bytes):
            try:
                reason = response.reason.decode("utf-8")
            except UnicodeDecodeError:
                reason = response.reason.decode("iso-8859-1")
        else:
            reason = response.reason

        if 400 <= response.status_code < 500:
            http_error_msg = "%s Client Error: %s for url: %s" % (
                response.status_code,
                reason,
                response.url,
            )

        elif 500 <= response.status_code < 600:
            http_error_msg = "%s Server Error: %s for url: %s" % (
                response.status_code,
                reason,
                response.url,
            )

        if http_error_msg:
            raise requests.exceptions.HTTPError(http_error_msg, response=response)

    # --- httpx ----------------------------------------------------

    async def request_async(
        self,
        http_method: str,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        json: JsonBody = None,
        retries: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Performs a request to server with given parameters using httpx.

        Same contract as :meth:`request`; must run on the loop that owns the client.
        """
        self._set_async_client()

        if retries is None:
            retries = self._retry_count
        if retries < 1:
            raise ValueError(f"retries must be at least 1, got {retries}")

        url = self._prepare_url(method)
        logger.info(f"{http_method} {url}")
        if headers is not None:
            headers = {**self.headers, **headers}
        else:
            headers = self.headers
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}

        for retry_idx in range(retries):
            response = None
            try:
                response = await self._async_httpx_client.request(
                    http_method,
                    url,
                    params=params,
                    json=json,
                    headers=headers,
                    timeout=self._request_timeout,
                )
                if response.is_error:
                    _Api._raise_for_status_httpx(response)
                return response
            except (httpx.RequestError, httpx.HTTPStatusError) as exc:
                await process_requests_exception_async(
                    self.logger,
                    exc,
                    method,
                    url,
                    verbose=True,
                    swallow_exc=True,
                    sleep_sec=self._sleep_sec(retry_idx),
                    response=response,
                    retry_info={"retry_idx": retry_idx + 1, "retry_limit": retries},
                )
            except Exception as exc:
                process_unhandled_request(self.logger, exc, url)
        raise AssertionError("unreachable: the last attempt either returns or raises")

    async def get_async(
        self, method: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> httpx.Response:
        return await self.request_async("GET", method, params=params, **kwargs)

    @staticmethod
    def _raise_for_status_httpx(response: httpx.Response):
        """
        Raise error and show message with error code if given response can not connect to server.
        :param response: Response class object
        """
        http_error_msg = ""
        reason = getattr(response, "reason_phrase", None) or "Can't get reason"

        if 400 <= response.status_code < 500:
            http_error_msg = "%s Client Error: %s for url: %s" % (
                response.status_code,
                reason,
                response.url,
            )

        elif 500 <= response.status_code < 600:
            http_error_msg = "%s Server Error: %s for url: %s" % (
                response.status_code,
                reason,
                response.url,
            )

        if http_error_msg:
            raise httpx.HTTPStatusError(
                message=http_error_msg, response=response, request=response.request
            )

    def _set_async_client(self):
        """
        Set async httpx client with HTTP/2 if it is not set yet.
        """
        if self._async_httpx_client is None:
            if self._transport is not None:
                self._async_httpx_client = httpx.AsyncClient(transport=self._transport)
            else:
                self._async_httpx_client = httpx.AsyncClient(http2=True)

    async def aclose(self) -> None:
        """Close the async client on the loop that owns it."""
        if self._async_httpx_client is not None:
            client, self._async_httpx_client = self._async_httpx_client, None
            await on_bg_loop(client.aclose())
