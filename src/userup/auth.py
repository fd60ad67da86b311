# Userup Python SDK
# File: auth.py
# Version: v3

"""OAuth2 client for obtaining bearer tokens for the Userup services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
import base64

import httpx

from .config import UserupConfig
from .errors import ConnectError, DecodeError, RemoteError


@dataclass
class OAuthClient:
    """Simple OAuth2 client using the client-credentials flow.

    Credentials are sent via HTTP Basic authentication and the request body
    only contains grant_type.
    """

    config: UserupConfig
    _cached_token: Optional[str] = None

    async def get_access_token(self) -> str:
        """Return a valid access token.

        The token is cached in-memory until the process restarts.
        """
        if self._cached_token:
            return self._cached_token

        if not self.config.oauth_configured:
            raise ConnectError(
                "OAuth configuration is incomplete. "
                "Set USERUP_OAUTH_TOKEN_URL, USERUP_CLIENT_ID "
                "and USERUP_CLIENT_SECRET."
            )

        # Build HTTP Basic Authorization header: base64(client_id:client_secret)
        raw_credentials = f"{self.config.client_id}:{self.config.client_secret}"
        basic_token = base64.b64encode(raw_credentials.encode("utf-8")).decode("ascii")

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": f"Basic {basic_token}",
        }

        async with httpx.AsyncClient(timeout=30.0, verify=self.config.verify_tls) as client:
            try:
                response = await client.post(
                    self.config.oauth_token_url,
                    data={"grant_type": "client_credentials"},
                    headers=headers,
                )
            except httpx.RequestError as exc:
                raise ConnectError(
                    f"Error calling token endpoint '{self.config.oauth_token_url}': {exc}"
                ) from exc

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            body_preview = exc.response.text[:500]
            raise RemoteError(
                f"Failed to obtain access token from '{self.config.oauth_token_url}' "
                f"(HTTP {status}). Check USERUP_OAUTH_TOKEN_URL, "
                "USERUP_CLIENT_ID and USERUP_CLIENT_SECRET. "
                f"Response snippet: {body_preview}",
                code="unauthenticated",
                status=status,
            ) from exc

        data: dict[str, Any] = response.json()
        token = data.get("access_token")
        if not token:
            raise DecodeError("OAuth token response did not contain 'access_token'")

        self._cached_token = token
        return token
