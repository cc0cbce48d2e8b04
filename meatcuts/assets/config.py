from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class AssetStoreConfig:
    base_url: str = os.getenv("ASSET_STORE_URL", "http://localhost:9000")
    api_token: str = os.getenv("ASSET_STORE_TOKEN", "")
    folder: str = os.getenv("ASSET_STORE_FOLDER", "meat-cut-images")
    # {base_url} and {id} are substituted
    public_url_template: str = os.getenv(
        "ASSET_PUBLIC_URL_TEMPLATE", "{base_url}/assets/{id}/content"
    )
    timeout_seconds: float = float(os.getenv("ASSET_STORE_TIMEOUT", "30"))
    max_attempts: int = int(os.getenv("ASSET_STORE_MAX_ATTEMPTS", "5"))
    retry_initial_wait: float = float(os.getenv("ASSET_STORE_RETRY_INITIAL_WAIT", "1"))
    retry_max_wait: float = float(os.getenv("ASSET_STORE_RETRY_MAX_WAIT", "30"))
    retry_jitter: float = float(os.getenv("ASSET_STORE_RETRY_JITTER", "1"))
    max_workers: int = int(os.getenv("ASSET_UPLOAD_WORKERS", "4"))
    request_delay: float = float(os.getenv("ASSET_REQUEST_DELAY", "0.1"))
    image_extensions: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".gif", ".webp")


DEFAULT_ASSET_STORE_CONFIG = AssetStoreConfig()
