"""
Tier Table Configuration

The one tier table every caller reads. Thresholds, earn-back rates and
per-stay credit caps live here as data and are validated once, when the
API module loads, so a bad table stops the service before it serves.

A deployment can replace the table with a JSON file (TIER_CONFIG_PATH):
either a list of tier objects or {"version": "...", "tiers": [...]}.
"""

import json
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from loyalty.errors import InvalidConfiguration
from loyalty.models import TierDefinition
from loyalty.tier_engine import TierEngine, validate_tiers

TIER_TABLE_VERSION = "2024.2"

# Ascending by threshold
DEFAULT_TIERS = [
    {
        "name": "Weekender",
        "threshold": 0,
        "points_label": "First Stay",
        "tier_number": 5,
        "color": "#e5e5e5",
        "signature_benefit": "Personalized Welcome Ritual (curated to guest)",
        "earn_back_percent": 1,
        "max_credit_per_stay": 2500,
        "reward_description": "Earn 1% back in Voyage Bucks (up to $2,500 redeemable on your next stay)",
        "message": "Your journey with Cuvée begins with a personalized welcome experience and earning Voyage Bucks toward your next stay.",
        "short_reveal": "Your journey begins.",
    },
    {
        "name": "Explorer",
        "threshold": 40000,
        "points_label": "40,000+ Voyage Points",
        "tier_number": 4,
        "color": "#8d93af",
        "signature_benefit": "Travel Style Setup: guest preferences are remembered & auto-applied pre-arrival",
        "earn_back_percent": 2,
        "max_credit_per_stay": 5000,
        "reward_description": "Earn 2% back in Voyage Bucks (up to $5,000 redeemable on your next stay)",
        "message": "Your preferences are remembered and every stay becomes more seamless, earning you more Voyage Bucks.",
        "short_reveal": "The world is opening.",
    },
    {
        "name": "Voyager",
        "threshold": 100000,
        "points_label": "100,000+ Voyage Points",
        "tier_number": 3,
        "color": "#2c2f3f",
        "signature_benefit": "One Signature Experience Per Year",
        "earn_back_percent": 3,
        "max_credit_per_stay": 7500,
        "reward_description": "Earn 3% back in Voyage Bucks (up to $7,500 redeemable on your next stay)",
        "message": "Your travels are becoming a tradition, and traditions should grow with greater rewards.",
        "short_reveal": "Tradition takes shape.",
    },
    {
        "name": "Jetsetter",
        "threshold": 250000,
        "points_label": "250,000+ Voyage Points",
        "tier_number": 2,
        "color": "#77664c",
        "signature_benefit": "Signature Experience Every Stay",
        "earn_back_percent": 4,
        "max_credit_per_stay": 10000,
        "reward_description": "Earn 4% back in Voyage Bucks (up to $10,000 redeemable on your next stay)",
        "message": "Every stay includes a curated signature moment crafted just for you and exceptional rewards.",
        "short_reveal": "More time awaits.",
    },
    {
        "name": "Cuvée Circle",
        "threshold": 500000,
        "points_label": "500,000+ Voyage Points",
        "tier_number": 1,
        "color": "#bda048",
        "signature_benefit": "One Complimentary Night Per Year + First Access to New Villas + Peak Week Soft Holds",
        "earn_back_percent": 5,
        "max_credit_per_stay": 15000,
        "reward_description": "Earn 5% back in Voyage Bucks (up to $15,000 redeemable on your next stay)",
        "message": "You've arrived. This is the tier reserved for our most devoted travelers.",
        "short_reveal": "Welcome to The Circle.",
        "circle_access_list": [
            "One Complimentary Night Per Year",
            "First Access to New Villas",
            "Peak Week Soft Holds",
            "Private Invitations to exclusive events",
        ],
        "is_legacy_circle_tier": True,
        "invite_only": True,
    },
]

# Field rules for tier entries
TIER_FIELD_METADATA = {
    "name": {"type": "string", "required": True},
    "threshold": {"type": "integer", "required": True, "min": 0},
    "earn_back_percent": {"type": "integer", "required": True, "min": 1, "max": 5},
    "max_credit_per_stay": {"type": "integer", "required": True, "min": 0},
    "reward_description": {"type": "string"},
    "signature_benefit": {"type": "string"},
    "message": {"type": "string"},
    "is_legacy_circle_tier": {"type": "boolean"},
    "circle_access_list": {"type": "list"},
    "points_label": {"type": "string"},
    "tier_number": {"type": "integer"},
    "color": {"type": "string"},
    "short_reveal": {"type": "string"},
    "invite_only": {"type": "boolean"},
}

_TYPES = {
    "string": str,
    "integer": int,
    "boolean": bool,
    "list": list,
}


def tier_from_dict(entry: dict, position: int) -> TierDefinition:
    """Build a TierDefinition from one config entry, checking field rules"""
    if not isinstance(entry, dict):
        raise InvalidConfiguration(f"Tier at position {position} is not an object")

    unknown = set(entry) - set(TIER_FIELD_METADATA)
    if unknown:
        raise InvalidConfiguration(
            f"Tier at position {position} has unknown fields: {', '.join(sorted(unknown))}"
        )

    label = entry.get("name", f"#{position}")
    for key, metadata in TIER_FIELD_METADATA.items():
        if key not in entry:
            if metadata.get("required"):
                raise InvalidConfiguration(f"Tier '{label}' is missing '{key}'")
            continue

        value = entry[key]
        expected = _TYPES[metadata["type"]]
        # bool is an int subclass; keep the two apart
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise InvalidConfiguration(
                f"Tier '{label}' field '{key}' must be {metadata['type']}"
            )

        min_val = metadata.get("min")
        max_val = metadata.get("max")
        if min_val is not None and value < min_val:
            raise InvalidConfiguration(f"Tier '{label}' field '{key}' cannot be less than {min_val}")
        if max_val is not None and value > max_val:
            raise InvalidConfiguration(f"Tier '{label}' field '{key}' cannot be more than {max_val}")

    data = dict(entry)
    data["circle_access_list"] = tuple(entry.get("circle_access_list", ()))
    return TierDefinition(**data)


def parse_tier_table(raw: Union[list, dict]) -> Tuple[str, List[TierDefinition]]:
    """Parse raw config into (version, tiers) and enforce table invariants"""
    version = TIER_TABLE_VERSION
    entries: Any = raw
    if isinstance(raw, dict):
        version = str(raw.get("version", "custom"))
        entries = raw.get("tiers")

    if not isinstance(entries, list):
        raise InvalidConfiguration("Tier table must be a list of tiers")

    tiers = [tier_from_dict(entry, position) for position, entry in enumerate(entries)]
    validate_tiers(tiers)
    return version, tiers


def load_tier_table(path: Optional[Union[str, Path]] = None) -> Tuple[str, List[TierDefinition]]:
    """
    Load the tier table.

    Args:
        path: Optional JSON override; the built-in table is used when omitted

    Raises:
        InvalidConfiguration: file unreadable or table invalid
    """
    if not path:
        return parse_tier_table(DEFAULT_TIERS)

    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidConfiguration(f"Cannot read tier table from {path}: {e}") from e

    return parse_tier_table(raw)


def create_tier_engine(path: Optional[Union[str, Path]] = None) -> TierEngine:
    """Load, validate and wrap the tier table"""
    version, tiers = load_tier_table(path)
    return TierEngine(tiers, version=version)
