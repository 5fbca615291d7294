from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote, urlsplit, urlunsplit

import httpx
from fastapi import Request

from app.config import CLOUDANT_APIKEY, CLOUDANT_TIMEOUT, CLOUDANT_URL, CREDENTIALS_PATH
from app.errors import ApiError
from app.services.iam_auth import IamTokenError, IamTokenManager

logger = logging.getLogger(__name__)

NOT_INITIALIZED_MESSAGE = "Cloudant not initialized."


class DocumentStoreError(Exception):
    """A failed call to the document store.

    ``status_code`` is None for transport failures (connection refused,
    timeouts) where no HTTP response was received.
    """

    def __init__(self, message: str, status_code: int | None = None, error: str = "", reason: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.reason = reason

    @classmethod
    def from_response(cls, resp: httpx.Response) -> DocumentStoreError:
        error = ""
        reason = ""
        try:
            body = resp.json()
            if isinstance(body, dict):
                error = str(body.get("error", ""))
                reason = str(body.get("reason", ""))
        except ValueError:
            reason = resp.text[:200]
        return cls(
            f"{resp.request.method} {resp.request.url.path} returned HTTP {resp.status_code}: {error} {reason}".strip(),
            status_code=resp.status_code,
            error=error,
            reason=reason,
        )


class DocumentStore:
    engine: str

    async def put_database(self, db: str) -> dict:  # pragma: no cover - interface
        raise NotImplementedError

    async def post_bulk_docs(self, db: str, docs: list[dict]) -> list[dict]:  # pragma: no cover - interface
        raise NotImplementedError

    async def post_find(self, db: str, selector: dict[str, Any]) -> list[dict]:  # pragma: no cover - interface
        raise NotImplementedError

    async def post_all_docs(self, db: str, include_docs: bool = True) -> list[dict]:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass
class CloudantStore(DocumentStore):
    """Cloudant/CouchDB HTTP API client.

    Authenticates every request with a bearer token from ``token_manager``
    when one is set; otherwise relies on the client's own auth (basic auth
    for legacy URL credentials).
    """

    client: httpx.AsyncClient
    token_manager: IamTokenManager | None = None
    engine: str = "cloudant"

    async def _request(self, method: str, path: str, payload: dict | None = None) -> Any:
        headers = {"Accept": "application/json"}
        if self.token_manager is not None:
            try:
                token = await self.token_manager.get_token()
            except IamTokenError as e:
                raise DocumentStoreError(f"{method} {path} not sent: {e}") from e
            headers["Authorization"] = f"Bearer {token}"

        try:
            resp = await self.client.request(method, path, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise DocumentStoreError(f"{method} {path} failed: {e}") from e

        if resp.is_error:
            raise DocumentStoreError.from_response(resp)
        try:
            return resp.json()
        except ValueError as e:
            raise DocumentStoreError(f"{method} {path} returned invalid JSON", resp.status_code) from e

    async def put_database(self, db: str) -> dict:
        return await self._request("PUT", f"/{quote(db, safe='')}")

    async def post_bulk_docs(self, db: str, docs: list[dict]) -> list[dict]:
        return await self._request("POST", f"/{quote(db, safe='')}/_bulk_docs", {"docs": docs})

    async def _request_object(self, method: str, path: str, payload: dict) -> dict:
        result = await self._request(method, path, payload)
        if not isinstance(result, dict):
            raise DocumentStoreError(f"{method} {path} returned {type(result).__name__}, expected an object")
        return result

    async def post_find(self, db: str, selector: dict[str, Any]) -> list[dict]:
        result = await self._request_object("POST", f"/{quote(db, safe='')}/_find", {"selector": selector})
        return list(result.get("docs", []))

    async def post_all_docs(self, db: str, include_docs: bool = True) -> list[dict]:
        result = await self._request_object(
            "POST", f"/{quote(db, safe='')}/_all_docs", {"include_docs": include_docs}
        )
        rows = result.get("rows", [])
        if include_docs:
            return [row["doc"] for row in rows if row.get("doc") is not None]
        return rows

    async def close(self) -> None:
        await self.client.aclose()


def _normalize_url(url: str) -> str:
    url = url.strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        url = f"https://{url.lstrip('/')}"
    return url


def _split_userinfo(url: str) -> tuple[str, httpx.BasicAuth | None]:
    """Strip ``user:pass@`` from a URL and return it as basic auth."""
    parts = urlsplit(url)
    if not parts.username:
        return url, None
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    bare = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    return bare, httpx.BasicAuth(unquote(parts.username), unquote(parts.password or ""))


def load_legacy_url(path: str | Path) -> str | None:
    """Read the ``url`` key of a legacy credentials file, if there is one."""
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("No usable credentials file at %s: %s", path, e)
        return None
    url = data.get("url") if isinstance(data, dict) else None
    if not isinstance(url, str) or not url.strip():
        logger.warning("Credentials file %s has no usable url", path)
        return None
    return url


async def connect_with_iam(
    url: str,
    api_key: str,
    token_manager: IamTokenManager | None = None,
) -> CloudantStore | None:
    token_manager = token_manager or IamTokenManager(api_key)
    try:
        await token_manager.get_token()
    except IamTokenError as e:
        logger.error("Unable to retrieve IAM access token: %s", e)
        return None

    try:
        client = httpx.AsyncClient(base_url=_normalize_url(url), timeout=CLOUDANT_TIMEOUT)
    except httpx.InvalidURL as e:
        logger.error("Invalid CLOUDANT_URL: %s", e)
        return None
    logger.info("Connected to Cloudant with IAM token")
    return CloudantStore(client=client, token_manager=token_manager)


def connect_with_url(url: str) -> CloudantStore:
    base_url, auth = _split_userinfo(_normalize_url(url))
    client = httpx.AsyncClient(base_url=base_url, auth=auth, timeout=CLOUDANT_TIMEOUT)
    logger.info("Connected to Cloudant using URL (from config)")
    return CloudantStore(client=client)


async def connect_store() -> DocumentStore | None:
    """Resolve credentials and build the store, or return None when unavailable.

    Environment IAM credentials win; the legacy credentials file is the
    fallback.
    """
    if CLOUDANT_URL and CLOUDANT_APIKEY:
        return await connect_with_iam(CLOUDANT_URL, CLOUDANT_APIKEY)

    legacy_url = load_legacy_url(CREDENTIALS_PATH)
    if legacy_url:
        try:
            return connect_with_url(legacy_url)
        except (ValueError, httpx.InvalidURL) as e:
            logger.error("Invalid Cloudant url in %s: %s", CREDENTIALS_PATH, e)
            return None

    logger.warning("Cannot find Cloudant credentials in environment or %s", CREDENTIALS_PATH)
    return None


def get_store(request: Request) -> DocumentStore:
    """FastAPI dependency returning the store set up during startup."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise ApiError(500, NOT_INITIALIZED_MESSAGE)
    return store


async def find_documents(
    store: DocumentStore,
    db: str,
    selector: dict[str, Any],
    failure_message: str,
) -> list[dict]:
    """Run a selector query for a request handler.

    Store failures are logged and answered with a generic 500.
    """
    try:
        return await store.post_find(db, selector)
    except DocumentStoreError as e:
        logger.error("%s: %s", failure_message, e)
        raise ApiError(500, failure_message) from e
