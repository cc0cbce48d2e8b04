from __future__ import annotations

import os
import threading

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_TO_FILE", "false")

from typing import Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient

from meatcuts.app import app, get_asset_store
from meatcuts.auth.config import DEFAULT_AUTH_CONFIG
from meatcuts.assets.client import DEFAULT_MIME_TYPE, RemoteAsset, StoredAsset
from meatcuts.catalog.models import MeatCutIn
from meatcuts.catalog.repository import create_item
from meatcuts.db.session import build_engine, get_session, init_db, make_session_factory
from meatcuts.errors import AssetNotFoundError, AssetStoreError


class FakeAssetStore:
    """In-memory stand-in for the remote asset store."""

    def __init__(self):
        self.assets: Dict[str, Tuple[str, str, bytes]] = {}
        self.fail_uploads: set[str] = set()
        self.fail_deletes = False
        self.fail_list = False
        self.calls: List[Tuple[str, str]] = []
        self._next_id = 1
        self._lock = threading.Lock()

    def url_for(self, asset_id: str) -> str:
        return f"https://assets.test/{asset_id}"

    def add(self, name: str, mime_type: str = DEFAULT_MIME_TYPE, asset_id: str | None = None) -> str:
        with self._lock:
            asset_id = asset_id or f"asset-{self._next_id}"
            self._next_id += 1
            self.assets[asset_id] = (name, mime_type, b"")
        return asset_id

    def upload(self, data: bytes, name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredAsset:
        self.calls.append(("upload", name))
        if name in self.fail_uploads:
            raise AssetStoreError(f"upload of {name} timed out")
        asset_id = self.add(name, mime_type)
        self.assets[asset_id] = (name, mime_type, data)
        return StoredAsset(id=asset_id, url=self.url_for(asset_id))

    def update(self, asset_id: str, data: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> StoredAsset:
        self.calls.append(("update", asset_id))
        if asset_id not in self.assets:
            raise AssetNotFoundError(asset_id)
        name, _, _ = self.assets[asset_id]
        self.assets[asset_id] = (name, mime_type, data)
        return StoredAsset(id=asset_id, url=self.url_for(asset_id))

    def delete(self, asset_id: str) -> bool:
        self.calls.append(("delete", asset_id))
        if self.fail_deletes:
            raise AssetStoreError("delete failed")
        self.assets.pop(asset_id, None)
        return True

    def list(self) -> List[RemoteAsset]:
        if self.fail_list:
            raise AssetStoreError("listing failed")
        return [RemoteAsset(id=i, name=n, mime_type=m) for i, (n, m, _) in self.assets.items()]

    def download(self, asset_id: str) -> bytes:
        if asset_id not in self.assets:
            raise AssetNotFoundError(asset_id)
        return self.assets[asset_id][2]


def _make_cut(name: str = "Arm Chuck Roast", **overrides) -> MeatCutIn:
    fields = {
        "name": name,
        "chinese_name": "肩胛肉",
        "part": "Chuck",
        "lean": False,
        "price_display": "$6 – $9",
        "image_reference": name.lower().replace(" ", "_"),
    }
    fields.update(overrides)
    return MeatCutIn(**fields)


@pytest.fixture
def make_cut():
    return _make_cut


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def store():
    return FakeAssetStore()


@pytest.fixture
def catalog(session):
    """Arm Chuck Roast (Chuck, $6-$9) and Short Rib (Plate, $10-$15)."""
    chuck = create_item(
        session,
        _make_cut(cooking_methods=["Braise", "Roast"], recommended_dishes=["Pot Roast"]),
    )
    rib = create_item(
        session,
        _make_cut(
            "Short Rib",
            chinese_name="牛小排",
            part="Plate",
            price_display="$10 – $15",
            cooking_methods=["Grill", "Braise"],
            recommended_dishes=["Galbi"],
        ),
    )
    return chuck, rib


@pytest.fixture
def client(session_factory, store):
    def _session_override():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_asset_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    resp = client.post(
        "/api/admin/login",
        json={"username": DEFAULT_AUTH_CONFIG.admin_username, "password": DEFAULT_AUTH_CONFIG.admin_password},
    )
    assert resp.status_code == 200
    return client
