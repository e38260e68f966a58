"""
Field alias resolution for loosely-typed CRM records.

Each logical attribute is an ordered list of source field names; the first
alias holding a non-empty value wins. Keeping the aliases as data means a new
CRM spelling is a one-line change here rather than another conditional.
"""
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple


@dataclass(frozen=True)
class FieldAlias:
    """Ordered source-field spellings for one logical attribute"""
    attribute: str
    aliases: Tuple[str, ...]

    def resolve(self, record: Mapping[str, Any]) -> Optional[Any]:
        return resolve_field(record, self.aliases)


CHECK_IN = FieldAlias("check_in", ("check_in", "checkin", "check_in_date", "arrival_date"))
CHECK_OUT = FieldAlias("check_out", ("check_out", "checkout", "check_out_date", "departure_date"))
PROPERTY_NAME = FieldAlias("property_name", ("property_name",))
DEAL_NAME = FieldAlias("deal_name", ("dealname",))
AMOUNT = FieldAlias("amount", ("amount",))
CONFIRMATION_NUMBER = FieldAlias("confirmation_number", ("confirmation_number",))
DEAL_STAGE = FieldAlias("deal_stage", ("dealstage",))
DEAL_ID = FieldAlias("id", ("id", "hs_object_id"))

# Fields consumed by the normalizer; anything else passes through as raw_fields
RESERVATION_FIELDS = frozenset(
    alias
    for rule in (CHECK_IN, CHECK_OUT, PROPERTY_NAME, DEAL_NAME, AMOUNT,
                 CONFIRMATION_NUMBER, DEAL_STAGE, DEAL_ID)
    for alias in rule.aliases
)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def resolve_field(record: Mapping[str, Any], aliases: Tuple[str, ...]) -> Optional[Any]:
    """Return the value of the first alias present and non-empty in record"""
    for alias in aliases:
        value = record.get(alias)
        if not is_blank(value):
            return value.strip() if isinstance(value, str) else value
    return None


def coerce_non_negative(value: Any) -> float:
    """
    Coerce a CRM numeric field to a non-negative finite float.

    Missing, non-numeric, NaN, infinite and negative values all become 0.
    CRM numbers often arrive as strings ("65000.00", "1,250").
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number
