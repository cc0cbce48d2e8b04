from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote

import requests
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ..errors import AssetNotFoundError, AssetStoreError
from .config import DEFAULT_ASSET_STORE_CONFIG, AssetStoreConfig

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class RemoteAsset:
    id: str
    name: str
    mime_type: str = ""

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")


@dataclass(frozen=True)
class StoredAsset:
    id: str
    url: str


class AssetStore(Protocol):
    """Capabilities the engine needs from the remote image store."""

    def upload(self, data: bytes, name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredAsset: ...

    def update(self, asset_id: str, data: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> StoredAsset: ...

    def delete(self, asset_id: str) -> bool: ...

    def list(self) -> List[RemoteAsset]: ...

    def download(self, asset_id: str) -> bytes: ...

    def url_for(self, asset_id: str) -> str: ...


class _TransientHTTPError(Exception):
    """429 / 5xx response; retried."""

    def __init__(self, response: requests.Response):
        super().__init__(f"HTTP {response.status_code} from {response.url}")
        self.response = response


_RETRYABLE = (_TransientHTTPError, requests.ConnectionError, requests.Timeout)


class HttpAssetStore:
    """
    REST client for the remote asset store.

    Connection errors, timeouts, 429 and 5xx are retried with exponential
    jitter backoff; once retries are exhausted an :class:`AssetStoreError`
    is raised so batch callers can record a per-item failure.
    """

    def __init__(
        self,
        config: AssetStoreConfig = DEFAULT_ASSET_STORE_CONFIG,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.session = session or requests.Session()
        if config.api_token:
            self.session.headers["Authorization"] = f"Bearer {config.api_token}"
        self.session.headers.setdefault("Accept", "application/json")

    # ── plumbing ────────────────────────────────────────────────────────

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        resp = self.session.request(
            method, self._url(path), timeout=self.config.timeout_seconds, **kwargs
        )
        if resp.status_code == 429 or resp.status_code >= 500:
            raise _TransientHTTPError(resp)
        return resp

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception_type(_RETRYABLE),
            wait=wait_exponential(multiplier=self.config.retry_initial_wait, max=self.config.retry_max_wait)
            + wait_random(0, self.config.retry_jitter),
            stop=stop_after_attempt(self.config.max_attempts),
        )

    def _request(self, method: str, path: str, *, asset_id: str | None = None, **kwargs: Any) -> requests.Response:
        try:
            resp = self._retrying()(self._send, method, path, **kwargs)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error("Asset store %s %s failed after retries: %s", method, path, cause)
            raise AssetStoreError(f"{method} {path} failed after {self.config.max_attempts} attempts: {cause}") from cause
        except requests.RequestException as e:
            raise AssetStoreError(f"{method} {path} failed: {e}") from e

        if resp.status_code == 404 and asset_id is not None:
            raise AssetNotFoundError(asset_id)
        if resp.status_code >= 400:
            raise AssetStoreError(f"{method} {path} returned HTTP {resp.status_code}: {resp.text[:200]}")
        return resp

    def _json(self, resp: requests.Response, method: str, path: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise AssetStoreError(f"{method} {path} returned a non-JSON body: {resp.text[:200]}") from e

    # ── capabilities ────────────────────────────────────────────────────

    def url_for(self, asset_id: str) -> str:
        return self.config.public_url_template.format(
            base_url=self.config.base_url.rstrip("/"), id=quote(str(asset_id), safe="")
        )

    def upload(self, data: bytes, name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredAsset:
        resp = self._request(
            "POST",
            "/assets",
            files={"file": (name, data, mime_type)},
            data={"name": name, "folder": self.config.folder},
        )
        body = self._json(resp, "POST", "/assets")
        try:
            asset_id = str(body["id"])
        except (KeyError, TypeError) as e:
            raise AssetStoreError(f"Upload of {name} returned no asset id: {body!r:.200}") from e
        logger.info("Uploaded %s as asset %s", name, asset_id)
        return StoredAsset(id=asset_id, url=self.url_for(asset_id))

    def update(self, asset_id: str, data: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> StoredAsset:
        self._request(
            "PUT",
            f"/assets/{quote(asset_id, safe='')}",
            asset_id=asset_id,
            files={"file": (asset_id, data, mime_type)},
        )
        return StoredAsset(id=asset_id, url=self.url_for(asset_id))

    def delete(self, asset_id: str) -> bool:
        try:
            self._request("DELETE", f"/assets/{quote(asset_id, safe='')}", asset_id=asset_id)
        except AssetNotFoundError:
            logger.warning("Asset %s not found, considering it deleted", asset_id)
        return True

    def list(self) -> List[RemoteAsset]:
        assets: List[RemoteAsset] = []
        params: Dict[str, str] = {"folder": self.config.folder}
        while True:
            body = self._json(self._request("GET", "/assets", params=params), "GET", "/assets")
            try:
                assets.extend(
                    RemoteAsset(
                        id=str(raw["id"]),
                        name=raw.get("name", ""),
                        mime_type=raw.get("mime_type") or raw.get("mimeType") or "",
                    )
                    for raw in body.get("assets", [])
                )
            except (KeyError, TypeError, AttributeError) as e:
                raise AssetStoreError(f"Malformed asset listing: {e}") from e
            token = body.get("next_page_token")
            if not token:
                return assets
            params = {**params, "page_token": token}

    def download(self, asset_id: str) -> bytes:
        resp = self._request("GET", f"/assets/{quote(asset_id, safe='')}/content", asset_id=asset_id)
        return resp.content
