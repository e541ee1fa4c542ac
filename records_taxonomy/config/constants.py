"""
config/constants.py
──────────────────────────────────────────────────────────────────────────────
Fixed vocabulary shared by services and adapters.

Why centralise these?
  • The tag palette and custom-field entity list decide what gets provisioned,
    so changing them is a deliberate, reviewable edit in one place
  • Country aliases are needed by both the registry and the CLI
"""
from __future__ import annotations

# ── Path sentinels ─────────────────────────────────────────────────────────────
AMBIGUOUS_PATH = "AMBIGUOUS"
PATH_SEPARATOR = "/"

# ── Tag palette ────────────────────────────────────────────────────────────────
# blue, green, red-orange, orange, purple, teal
TAG_COLORS: tuple[str, ...] = (
    "#1e90ff",
    "#32cd32",
    "#ff6347",
    "#ffa500",
    "#9370db",
    "#20b2aa",
)

# ── Entity types ───────────────────────────────────────────────────────────────
TRUST_ENTITY_TYPES: frozenset[str] = frozenset(
    {"unit-trust", "discretionary-trust", "family-trust", "hybrid-trust"}
)

# Trust-like and person-like entity types get a "<entity>-name" custom field.
CUSTOM_FIELD_ENTITY_TYPES: frozenset[str] = TRUST_ENTITY_TYPES | {"person"}
CUSTOM_FIELD_DATA_TYPE = "string"

# ── Countries ──────────────────────────────────────────────────────────────────
DEFAULT_COUNTRY = "AUS"

COUNTRY_ALIASES: dict[str, str] = {
    "AU": "AUS",
    "US": "USA",
    "GB": "GBR",
    "UK": "GBR",  # common but not ISO
    "Australia": "AUS",
    "United States": "USA",
    "United Kingdom": "GBR",
    "Great Britain": "GBR",
}
_ALIASES_BY_KEY = {k.lower(): v for k, v in COUNTRY_ALIASES.items()}


def normalize_country(code: str) -> str:
    """Map alpha-2 codes and full names onto ISO 3166-1 alpha-3.

    Matching is case-insensitive.  Unknown values are returned unchanged
    (already alpha-3, or unsupported).
    """
    code = code.strip()
    return _ALIASES_BY_KEY.get(code.lower(), code.upper() if len(code) == 3 else code)


def is_trust_type(entity_type: str) -> bool:
    return entity_type in TRUST_ENTITY_TYPES


def custom_field_name(entity_type: str) -> str:
    return f"{entity_type}-name"


def entity_storage_path(entity_type: str) -> str:
    return f"{PATH_SEPARATOR}{entity_type}"
