"""
Reservation Normalizer: CRM deals -> canonical reservations

Deals arrive with inconsistent field spellings and a composite name such as
"Smith, Casa Bella, 7/1/24 - 7/8/24" (LastName, PropertyName, DateRange) or
"Smith, Casa Bella, Aspen, 7/1/24 - 7/8/24" when a location is known.

Each deal is handled independently. A deal that cannot be used is skipped
and reported as a SkippedRecord; the batch never fails because of one deal.
Output is ordered current -> upcoming -> past, stable within each group.
"""
import re
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from infrastructure.logging import get_logger

from . import field_aliases as fa
from .errors import InvalidDealBatch
from .models import (
    NormalizationResult,
    Reservation,
    ReservationStatus,
    SkippedRecord,
)

logger = get_logger("reservation_normalizer")

UNNAMED_PROPERTY = "Unnamed Property"

DATE_PATTERN = re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}")
DATE_RANGE_PATTERN = re.compile(
    r"(\d{1,2}/\d{1,2}/\d{2,4})\s*-\s*(\d{1,2}/\d{1,2}/\d{2,4})"
)
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")
_EPOCH_MILLIS = re.compile(r"^\d{11,}$")

# Skip reasons
NOT_A_MAPPING = "not_a_mapping"
MISSING_ID = "missing_id"
DUPLICATE_ID = "duplicate_id"


# =============================================================================
# Parsing helpers
# =============================================================================

def parse_deal_name(deal_name: Optional[str]) -> Tuple[Optional[str], str]:
    """
    Split a composite deal name into (property_name, location).

    The second comma-separated part is the property name; a lone part is the
    property name itself. A third part is the location unless it is a date.
    """
    if not deal_name:
        return None, ""

    parts = [part.strip() for part in deal_name.split(",")]

    property_name = None
    if len(parts) >= 2 and parts[1]:
        property_name = parts[1]
    elif parts[0]:
        property_name = parts[0]

    location = ""
    if len(parts) >= 3 and parts[2] and not DATE_PATTERN.search(parts[2]):
        location = parts[2]

    return property_name, location


def parse_date_range(deal_name: Optional[str]) -> Tuple[Optional[date], Optional[date]]:
    """Pull a 'M/D/YY - M/D/YY' range out of a deal name"""
    if not deal_name:
        return None, None
    match = DATE_RANGE_PATTERN.search(deal_name)
    if not match:
        return None, None
    return parse_date(match.group(1)), parse_date(match.group(2))


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a CRM date value to a calendar date.

    Accepts date/datetime objects, M/D/YY, M/D/YYYY, ISO dates and datetimes,
    and epoch milliseconds (HubSpot date properties). Anything else is None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _from_epoch_millis(value)

    text = str(value).strip()
    if not text:
        return None

    match = _SLASH_DATE.match(text)
    if match:
        month, day, year = (int(group) for group in match.groups())
        if len(match.group(3)) == 2:
            year += 2000 if year < 69 else 1900
        try:
            return date(year, month, day)
        except ValueError:
            return None

    if _EPOCH_MILLIS.match(text):
        return _from_epoch_millis(int(text))

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _from_epoch_millis(millis: float) -> Optional[date]:
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None


def infer_status(
    check_in: Optional[date],
    check_out: Optional[date],
    today: date,
) -> ReservationStatus:
    """
    Classify a stay against today.

    Both bounds are inclusive, so arriving today is 'current'. Undated deals
    default to 'upcoming'.
    """
    if check_in and check_out and check_in <= today <= check_out:
        return ReservationStatus.CURRENT
    if check_in and today < check_in:
        return ReservationStatus.UPCOMING
    if check_out and today > check_out:
        return ReservationStatus.PAST
    return ReservationStatus.UPCOMING


def sort_by_status(reservations: Iterable[Reservation]) -> List[Reservation]:
    """Stable sort: current, then upcoming, then past"""
    return sorted(reservations, key=lambda r: r.status.priority)


# =============================================================================
# Normalization
# =============================================================================

def _split_deal(deal: Mapping[str, Any]) -> Tuple[Optional[str], Mapping[str, Any]]:
    """Return (deal_id, properties) for a HubSpot object or a flat property map"""
    properties = deal.get("properties")
    if isinstance(properties, Mapping):
        deal_id = deal.get("id")
        if fa.is_blank(deal_id):
            deal_id = properties.get("hs_object_id")
    else:
        properties = deal
        deal_id = fa.DEAL_ID.resolve(deal)

    if fa.is_blank(deal_id):
        return None, properties
    return str(deal_id).strip(), properties


def normalize_deal(deal_id: str, props: Mapping[str, Any], today: date) -> Reservation:
    """Build one Reservation from a deal's properties"""
    deal_name = fa.DEAL_NAME.resolve(props)
    if deal_name is not None:
        deal_name = str(deal_name)

    parsed_name, location = parse_deal_name(deal_name)
    explicit_name = fa.PROPERTY_NAME.resolve(props)
    property_name = str(explicit_name) if explicit_name else (parsed_name or UNNAMED_PROPERTY)

    check_in = parse_date(fa.CHECK_IN.resolve(props))
    check_out = parse_date(fa.CHECK_OUT.resolve(props))
    if check_in is None and check_out is None:
        check_in, check_out = parse_date_range(deal_name)

    confirmation = fa.CONFIRMATION_NUMBER.resolve(props)

    return Reservation(
        id=deal_id,
        property_name=property_name,
        location=location,
        check_in=check_in,
        check_out=check_out,
        status=infer_status(check_in, check_out, today),
        amount=fa.coerce_non_negative(fa.AMOUNT.resolve(props)),
        confirmation_number=str(confirmation) if confirmation else deal_id,
        deal_stage=str(fa.DEAL_STAGE.resolve(props) or ""),
        raw_fields={
            key: value for key, value in props.items()
            if key not in fa.RESERVATION_FIELDS
        },
    )


def normalize_with_report(raw_deals: List[Any], now: datetime) -> NormalizationResult:
    """
    Normalize a batch of raw deals, reporting skipped records.

    Args:
        raw_deals: CRM deal records
        now: reference time for status inference (a date is accepted too)

    Raises:
        InvalidDealBatch: raw_deals is not a list
    """
    if not isinstance(raw_deals, list):
        raise InvalidDealBatch(
            f"Expected a list of deals, got {type(raw_deals).__name__}"
        )

    today = now.date() if isinstance(now, datetime) else now
    result = NormalizationResult()
    seen_ids = set()

    for index, deal in enumerate(raw_deals):
        if not isinstance(deal, Mapping):
            _skip(result, index, NOT_A_MAPPING)
            continue

        deal_id, props = _split_deal(deal)
        if deal_id is None:
            _skip(result, index, MISSING_ID)
            continue
        if deal_id in seen_ids:
            _skip(result, index, DUPLICATE_ID, deal_id)
            continue
        seen_ids.add(deal_id)

        result.reservations.append(normalize_deal(deal_id, props, today))

    result.reservations = sort_by_status(result.reservations)
    return result


def normalize(raw_deals: List[Any], now: datetime) -> List[Reservation]:
    """Normalize a batch of raw deals into sorted reservations"""
    return normalize_with_report(raw_deals, now).reservations


def _skip(result: NormalizationResult, index: int, reason: str, deal_id: Optional[str] = None) -> None:
    record = SkippedRecord(index=index, reason=reason, deal_id=deal_id)
    result.skipped.append(record)
    logger.warning("deal_skipped", index=index, reason=reason, deal_id=deal_id)
