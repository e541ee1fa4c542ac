"""
config/settings.py
──────────────────────────────────────────────────────────────────────────────
Single source of truth for all tuneable parameters.

All values can be overridden via environment variables or a .env file placed
at the project root.  The frozen dataclass ensures settings are never mutated
at runtime.

Common overrides:
  PAPERLESS_URL / PAPERLESS_API_TOKEN → target document store
  RECORDS_COUNTRY                     → retention jurisdiction (AUS, USA, GBR)
  TAXONOMY_DIR / MAPPING_DIR          → swap the shipped definitions
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
load_dotenv(Path(__file__).parent.parent.parent / ".env")

_PACKAGE_DATA = Path(__file__).parent.parent / "data"
_USER_STATE = Path.home() / ".records_taxonomy"


def _env(key: str, default: str) -> str:
    return os.getenv(key, default)


def _env_int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _env_path(key: str, default: Path) -> Path:
    return Path(os.getenv(key, str(default)))


@dataclass(frozen=True)
class Settings:
    """Immutable application settings loaded from environment variables."""

    # ── Document store (paperless-ngx) ─────────────────────────────────────
    paperless_url: str = field(
        default_factory=lambda: _env("PAPERLESS_URL", "")
    )
    paperless_api_token: str = field(
        default_factory=lambda: _env("PAPERLESS_API_TOKEN", "")
    )

    # ── Jurisdiction ───────────────────────────────────────────────────────
    # Accepts alpha-2, alpha-3 or full names; normalised by the registry.
    country: str = field(
        default_factory=lambda: _env("RECORDS_COUNTRY", "AUS")
    )
    default_entity_type: str = field(
        default_factory=lambda: _env("RECORDS_DEFAULT_ENTITY_TYPE", "household")
    )

    # ── Data paths ─────────────────────────────────────────────────────────
    taxonomy_dir: Path = field(
        default_factory=lambda: _env_path("TAXONOMY_DIR", _PACKAGE_DATA / "taxonomies")
    )
    mapping_dir: Path = field(
        default_factory=lambda: _env_path("MAPPING_DIR", _PACKAGE_DATA / "mappings")
    )
    audit_dir: Path = field(
        default_factory=lambda: _env_path("AUDIT_DIR", _USER_STATE / "audit")
    )
    state_dir: Path = field(
        default_factory=lambda: _env_path("STATE_DIR", _USER_STATE / "state")
    )

    # ── HTTP (seconds / counts) ────────────────────────────────────────────
    request_timeout: int = field(default_factory=lambda: _env_int("PAPERLESS_TIMEOUT", 30))
    request_retries: int = field(default_factory=lambda: _env_int("PAPERLESS_RETRIES", 3))
    page_size: int = field(default_factory=lambda: _env_int("PAPERLESS_PAGE_SIZE", 100))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Returns a cached singleton Settings instance.

    Use this everywhere instead of instantiating Settings() directly —
    it guarantees a single object is shared across the entire process.
    """
    return Settings()
