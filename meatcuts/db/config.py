from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")

_DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "data" / "catalog.sqlite3"


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = os.getenv("DATABASE_URL", f"sqlite:///{_DEFAULT_DB_PATH}")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


DEFAULT_DATABASE_CONFIG = DatabaseConfig()
