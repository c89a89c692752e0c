"""Environment-driven settings for the Directus REST API and its database."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DIRECTUS_URL = "http://localhost:8055"
DEFAULT_LIBRETRANSLATE_URL = "http://localhost:5000"


def load_environment(env_path: str | Path | None = None, *, load_env: bool = True) -> None:
    """Load ``.env`` values without overriding variables that are already set."""

    if not load_env:
        return
    if env_path is not None:
        load_dotenv(dotenv_path=env_path, override=False)
    else:
        load_dotenv(override=False)


@dataclass(frozen=True)
class DirectusSettings:
    """Connection details for the Directus REST API."""

    url: str = DEFAULT_DIRECTUS_URL
    email: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    timeout: float = 30

    @classmethod
    def from_env(
        cls,
        env_path: str | Path | None = None,
        *,
        load_env: bool = True,
    ) -> "DirectusSettings":
        load_environment(env_path, load_env=load_env)
        url = os.getenv("DIRECTUS_URL") or os.getenv("PUBLIC_URL") or DEFAULT_DIRECTUS_URL
        timeout = os.getenv("DIRECTUS_TIMEOUT")
        return cls(
            url=url.rstrip("/"),
            email=os.getenv("ADMIN_EMAIL"),
            password=os.getenv("ADMIN_PASSWORD"),
            token=os.getenv("DIRECTUS_TOKEN") or None,
            timeout=float(timeout) if timeout else 30,
        )


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection details for the database behind Directus."""

    host: str = "127.0.0.1"
    port: int = 5432
    name: str = "directus"
    user: str = "postgres"
    password: str = ""

    @classmethod
    def from_env(
        cls,
        env_path: str | Path | None = None,
        *,
        load_env: bool = True,
    ) -> "DatabaseSettings":
        load_environment(env_path, load_env=load_env)
        port = os.getenv("DB_PORT")
        try:
            port_value = int(port) if port else 5432
        except ValueError as exc:
            raise ValueError(f"DB_PORT must be an integer, got {port!r}.") from exc
        return cls(
            host=os.getenv("DB_HOST") or "127.0.0.1",
            port=port_value,
            name=os.getenv("DB_DATABASE") or "directus",
            user=os.getenv("DB_USER") or "postgres",
            password=os.getenv("DB_PASSWORD") or "",
        )

    @property
    def dsn(self) -> str:
        """Build a psycopg2-compatible DSN."""
        parts = [
            f"host={self.host}",
            f"port={self.port}",
            f"dbname={self.name}",
            f"user={self.user}",
        ]
        if self.password:
            parts.append(f"password={self.password}")
        return " ".join(parts)


@dataclass(frozen=True)
class TranslatorSettings:
    """LibreTranslate endpoint used for Indonesian to English drafts."""

    url: str = DEFAULT_LIBRETRANSLATE_URL
    api_key: Optional[str] = None
    timeout: float = 60

    @classmethod
    def from_env(
        cls,
        env_path: str | Path | None = None,
        *,
        load_env: bool = True,
    ) -> "TranslatorSettings":
        load_environment(env_path, load_env=load_env)
        return cls(
            url=(os.getenv("LIBRETRANSLATE_URL") or DEFAULT_LIBRETRANSLATE_URL).rstrip("/"),
            api_key=os.getenv("LIBRETRANSLATE_API_KEY") or None,
        )


def backup_directory() -> Path:
    """Return the directory used for JSON/CSV backups (``BACKUP_DIR``)."""
    return Path(os.getenv("BACKUP_DIR") or "backups")
