from typing import Optional
from urllib.parse import urlparse


def normalize_host(host: Optional[str]) -> str:
    """
    Turn a user-provided host into a base URL without trailing slash.

    ``localhost:7700`` -> ``http://localhost:7700``
    """
    if host is None or not host.strip():
        raise ValueError("The provided host is not valid.")
    host = host.strip()
    parsed_url = urlparse(host)
    if parsed_url.scheme not in ("http", "https"):
        host = "http://" + host
        parsed_url = urlparse(host)
    if not parsed_url.netloc:
        raise ValueError(f"The provided host is not valid: {host!r}")
    return host.rstrip("/")


def join_url(base: str, method: str) -> str:
    return f"{base.rstrip('/')}/{method.lstrip('/')}"
