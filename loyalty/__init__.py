"""
Voyage Passport loyalty core

Two pure components:
- Tier Engine: lifetime points -> tier, progress and rewards currency
- Reservation Normalizer: CRM deals -> sorted canonical reservations
"""
from .errors import InvalidConfiguration, InvalidDealBatch
from .models import (
    NormalizationResult,
    Reservation,
    ReservationStatus,
    SkippedRecord,
    TierAssessment,
    TierDefinition,
)
from .tier_engine import TierEngine, assess_tier, build_tier_info, validate_tiers
from .reservation_normalizer import normalize, normalize_with_report

__all__ = [
    "InvalidConfiguration",
    "InvalidDealBatch",
    "NormalizationResult",
    "Reservation",
    "ReservationStatus",
    "SkippedRecord",
    "TierAssessment",
    "TierDefinition",
    "TierEngine",
    "assess_tier",
    "build_tier_info",
    "validate_tiers",
    "normalize",
    "normalize_with_report",
]
