# Userup Python SDK
# File: config.py
# Version: v3

"""Configuration loading for the Userup client."""

from __future__ import annotations

from dataclasses import dataclass
import os

from .query import QueryEncoding


def _parse_bool_env(name: str, default: bool = False) -> bool:
    """Parse a boolean-like environment variable.

    Accepts 1/0, true/false, yes/no, on/off (case-insensitive).
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _parse_float_env(
    name: str,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    """Parse a float environment variable with clamping and safe fallback."""
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        value = float(default)
    else:
        try:
            value = float(str(raw).strip())
        except ValueError:
            value = float(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value

    return value


@dataclass
class UserupConfig:
    """Connection and encoding settings for the Userup services.

    TLS is on by default. Plaintext (the historical ``localhost:9000``
    development setup) has to be asked for with ``USERUP_USE_TLS=0``.
    """

    address: str = "localhost:9000"
    integrations_address: str | None = None

    use_tls: bool = True
    verify_tls: bool = True
    path_prefix: str = "/twirp"

    # Default per-call deadline; 0 disables it.
    timeout_seconds: float = 30.0

    # Optional OAuth2 client-credentials bearer auth
    oauth_token_url: str | None = None
    client_id: str | None = None
    client_secret: str | None = None

    mock_mode: bool = False
    event_source: str = "https://userup.io/python-sdk"

    # Query encoding knobs (see query.QueryEncoding)
    send_zero_limit: bool = False
    send_empty_select: bool = False

    @property
    def scheme(self) -> str:
        return "https" if self.use_tls else "http"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.address}"

    @property
    def integrations_base_url(self) -> str:
        return f"{self.scheme}://{self.integrations_address or self.address}"

    @property
    def oauth_configured(self) -> bool:
        return bool(self.oauth_token_url and self.client_id and self.client_secret)

    @property
    def query_encoding(self) -> QueryEncoding:
        return QueryEncoding(
            send_zero_limit=self.send_zero_limit,
            send_empty_select=self.send_empty_select,
        )

    @property
    def default_timeout(self) -> float | None:
        return self.timeout_seconds if self.timeout_seconds > 0 else None

    @classmethod
    def from_env(cls) -> "UserupConfig":
        """Create configuration from environment variables."""
        address = os.getenv("USERUP_ADDRESS") or "localhost:9000"
        integrations_address = os.getenv("USERUP_INTEGRATIONS_ADDRESS") or None

        use_tls = _parse_bool_env("USERUP_USE_TLS", default=True)
        verify_tls = _parse_bool_env("USERUP_VERIFY_TLS", default=True)
        path_prefix = os.getenv("USERUP_PATH_PREFIX", "/twirp")

        timeout_seconds = _parse_float_env(
            "USERUP_TIMEOUT_SECONDS", default=30.0, min_value=0.0, max_value=3600.0
        )

        return cls(
            address=address,
            integrations_address=integrations_address,
            use_tls=use_tls,
            verify_tls=verify_tls,
            path_prefix=path_prefix.rstrip("/"),
            timeout_seconds=timeout_seconds,
            oauth_token_url=os.getenv("USERUP_OAUTH_TOKEN_URL"),
            client_id=os.getenv("USERUP_CLIENT_ID"),
            client_secret=os.getenv("USERUP_CLIENT_SECRET"),
            mock_mode=_parse_bool_env("USERUP_MOCK_MODE", default=False),
            event_source=os.getenv("USERUP_EVENT_SOURCE") or "https://userup.io/python-sdk",
            send_zero_limit=_parse_bool_env("USERUP_QUERY_SEND_ZERO_LIMIT", default=False),
            send_empty_select=_parse_bool_env("USERUP_QUERY_SEND_EMPTY_SELECT", default=False),
        )
