"""
Configuration for CSV import and export.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class IngestionConfig:
    """
    Where seed CSVs live and how exports are named.
    """

    data_dir: Path = Path(os.getenv("CATALOG_DATA_DIR", "meatcuts/data"))
    seed_filename: str = "meat_cuts.csv"
    export_prefix: str = "meat_cuts_export"
    encoding: str = "utf-8"

    @property
    def seed_path(self) -> Path:
        return self.data_dir / self.seed_filename


DEFAULT_INGESTION_CONFIG = IngestionConfig()
