"""IBM Cloud IAM token acquisition for Cloudant.

Exchanges an API key for a bearer token at the IAM token endpoint using the
``urn:ibm:params:oauth:grant-type:apikey`` grant. Tokens are cached and
refreshed shortly before they expire.
"""

import asyncio
import logging
import time

import httpx

from app.config import IAM_TOKEN_URL

logger = logging.getLogger(__name__)

IAM_GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"
IAM_TIMEOUT = 30.0
REFRESH_MARGIN_SECONDS = 60


class IamTokenError(Exception):
    """Raised when an IAM access token cannot be obtained."""


def _token_expiry(data: dict, now: float) -> float:
    """Absolute expiry (epoch seconds) from an IAM token response."""
    if data.get("expiration"):
        return float(data["expiration"])
    if data.get("expires_in"):
        return now + float(data["expires_in"])
    return now


async def request_access_token(
    api_key: str,
    token_url: str = IAM_TOKEN_URL,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """POST the API key to the IAM endpoint and return the token response.

    Raises:
        IamTokenError: on a missing key, an HTTP error or a response
            without ``access_token``.
    """
    if not api_key:
        raise IamTokenError("CLOUDANT_APIKEY not set in environment variables")

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=IAM_TIMEOUT)

    try:
        resp = await client.post(
            token_url,
            data={"apikey": api_key, "grant_type": IAM_GRANT_TYPE},
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
        )
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPStatusError as e:
        raise IamTokenError(
            f"IAM token endpoint returned HTTP {e.response.status_code}: {e.response.text[:200]}"
        ) from e
    except (httpx.HTTPError, ValueError) as e:
        raise IamTokenError(f"Error fetching IAM token: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if not data.get("access_token"):
        raise IamTokenError("IAM token response did not include an access_token")
    return data


class IamTokenManager:
    """Caches an IAM bearer token and refreshes it before expiry."""

    def __init__(
        self,
        api_key: str,
        token_url: str = IAM_TOKEN_URL,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.token_url = token_url
        self._client = client
        self._access_token: str | None = None
        self._expires_at = 0.0
        self._refresh_lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return (
            self._access_token is not None
            and time.time() < self._expires_at - REFRESH_MARGIN_SECONDS
        )

    async def get_token(self) -> str:
        if self._is_fresh():
            return self._access_token

        async with self._refresh_lock:
            # Another caller may have refreshed while this one waited
            if self._is_fresh():
                return self._access_token
            data = await request_access_token(self.api_key, self.token_url, self._client)
            self._access_token = data["access_token"]
            self._expires_at = _token_expiry(data, time.time())
            logger.info("IAM access token retrieved successfully")
            return self._access_token
