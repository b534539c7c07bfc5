"""URL canonicalization for snap aggregation keys."""

from urllib.parse import urlsplit

from snaps.errors import InvalidUrl

DEFAULT_PORTS = {"http": 80, "https": 443}


def canonicalize(raw_url: str) -> str:
    """
    Reduce a URL to its ``host + path`` aggregation key.

    Scheme, credentials, query string and fragment are discarded, the host is
    lowercased and trailing slashes are stripped from the path, so
    ``http://a.com/x/`` and ``https://a.com/x`` both become ``a.com/x``.

    Args:
        raw_url: URL as submitted by the client

    Returns:
        Canonical URL key

    Raises:
        InvalidUrl: If the input is not an absolute URL
    """
    if not isinstance(raw_url, str) or not raw_url.strip():
        raise InvalidUrl()

    try:
        parsed = urlsplit(raw_url.strip())
        port = parsed.port
    except ValueError as e:
        raise InvalidUrl() from e

    host = parsed.hostname
    if not parsed.scheme or not host:
        raise InvalidUrl()

    if ":" in host:
        host = f"[{host}]"  # IPv6 literal

    scheme = parsed.scheme.lower()
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        host = f"{host}:{port}"

    return host + parsed.path.rstrip("/")
