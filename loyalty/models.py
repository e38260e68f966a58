"""
Shared data models for the Voyage Passport loyalty core
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# Tiers
# =============================================================================

@dataclass(frozen=True)
class TierDefinition:
    """A named reward level entered at a minimum lifetime-points threshold"""
    name: str
    threshold: int
    earn_back_percent: int
    max_credit_per_stay: int
    reward_description: str = ""
    signature_benefit: str = ""
    message: str = ""
    is_legacy_circle_tier: bool = False
    circle_access_list: tuple = ()

    # Display only
    points_label: str = ""
    tier_number: Optional[int] = None
    color: str = ""
    short_reveal: str = ""
    invite_only: bool = False

    def to_dict(self, level: Optional[int] = None) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "threshold": self.threshold,
            "points_label": self.points_label,
            "tier_number": self.tier_number,
            "color": self.color,
            "signature_benefit": self.signature_benefit,
            "earn_back_percent": self.earn_back_percent,
            "max_credit_per_stay": self.max_credit_per_stay,
            "reward": self.reward_description,
            "message": self.message,
            "short_reveal": self.short_reveal,
            "is_legacy": self.is_legacy_circle_tier,
            "invite_only": self.invite_only,
        }
        if self.circle_access_list:
            data["circle_access"] = list(self.circle_access_list)
        if level is not None:
            data["level"] = level
        return data


@dataclass(frozen=True)
class TierAssessment:
    """
    Result of placing a points value on the tier table.

    current_tier is None only in the pre-first-tier state, which requires a
    table whose lowest threshold is above zero.
    """
    lifetime_points: float
    current_tier: Optional[TierDefinition]
    next_tier: Optional[TierDefinition]
    progress_percentage: float
    points_to_next_tier: int
    is_circle: bool
    rewards_currency_earned: int
    redeemable_per_stay: int = 0
    current_level: Optional[int] = None   # 1-based position in the table
    next_level: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_tier": (
                self.current_tier.to_dict(level=self.current_level)
                if self.current_tier else None
            ),
            "next_tier": (
                self.next_tier.to_dict(level=self.next_level)
                if self.next_tier else None
            ),
            "progress_percentage": self.progress_percentage,
            "points_to_next_tier": self.points_to_next_tier,
            "voyage_points": self.lifetime_points,
            "is_circle": self.is_circle,
            "rewards_currency_earned": self.rewards_currency_earned,
            "redeemable_per_stay": self.redeemable_per_stay,
        }


# =============================================================================
# Reservations
# =============================================================================

class ReservationStatus(str, Enum):
    """Where a stay sits relative to today"""
    CURRENT = "current"
    UPCOMING = "upcoming"
    PAST = "past"

    @property
    def priority(self) -> int:
        return STATUS_PRIORITY[self]


STATUS_PRIORITY = {
    ReservationStatus.CURRENT: 0,
    ReservationStatus.UPCOMING: 1,
    ReservationStatus.PAST: 2,
}


@dataclass
class Reservation:
    """Canonical reservation derived from one CRM deal"""
    id: str
    property_name: str
    location: str
    check_in: Optional[date]
    check_out: Optional[date]
    status: ReservationStatus
    amount: float
    confirmation_number: str
    deal_stage: str = ""
    raw_fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "property_name": self.property_name,
            "location": self.location,
            "check_in": self.check_in.isoformat() if self.check_in else None,
            "check_out": self.check_out.isoformat() if self.check_out else None,
            "amount": self.amount,
            "confirmation_number": self.confirmation_number,
            "deal_stage": self.deal_stage,
            "raw_fields": self.raw_fields,
        }


@dataclass(frozen=True)
class SkippedRecord:
    """A raw deal left out of the normalized output"""
    index: int
    reason: str
    deal_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "reason": self.reason, "deal_id": self.deal_id}


@dataclass
class NormalizationResult:
    """Reservations built from a deal batch plus whatever was skipped"""
    reservations: List[Reservation] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)
