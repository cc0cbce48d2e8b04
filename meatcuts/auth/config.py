import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class AuthConfig:
    admin_username: str = os.getenv("ADMIN_USERNAME", "admin")
    admin_password: str = os.getenv("ADMIN_PASSWORD", "admin")
    session_secret: str = os.getenv("SESSION_SECRET", "meatcuts-secret-change-in-production")
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:5173")


DEFAULT_AUTH_CONFIG = AuthConfig()
