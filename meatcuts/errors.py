from __future__ import annotations


class CatalogError(Exception):
    """Base class for errors raised by the catalog engine."""


class InvalidInputError(CatalogError):
    """Malformed input: bad price string, missing required field, empty slug."""


class NotFoundError(CatalogError):
    """A referenced meat cut or remote asset does not exist."""


class AssetNotFoundError(NotFoundError):
    def __init__(self, asset_id: str):
        super().__init__(f"Remote asset {asset_id} not found")
        self.asset_id = asset_id


class AssetStoreError(CatalogError):
    """Remote asset store failure that survived the client's retries."""


class ConsistencyError(CatalogError):
    """A storage constraint fired that the engine should have prevented."""
