#!/usr/bin/env python3
"""
Voyage Passport - CLI Runner

Usage:
    python run_passport.py --tiers                      # Show the tier table
    python run_passport.py --email guest@example.com    # Passport + reservations
    python run_passport.py --email guest@example.com --json
"""
import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

# Add current directory to path
sys.path.insert(0, str(Path(__file__).parent))

from config import settings
from config.tier_config import create_tier_engine
from infrastructure.logging import configure_logging
from loyalty import normalize_with_report
from loyalty.field_aliases import FieldAlias, coerce_non_negative
from tools.hubspot_client import CRMError, HubSpotClient


def show_tiers(engine):
    """Print the configured tier table"""
    print(f"\n{'='*60}")
    print(f"  VOYAGE PASSPORT TIERS (table {engine.version})")
    print(f"{'='*60}\n")
    for tier in engine.tier_table():
        marker = " (Circle)" if tier["is_legacy"] else ""
        print(f"  {tier['level']}. {tier['name']}{marker}")
        print(f"     from {tier['threshold']:,} points, "
              f"{tier['earn_back_percent']}% back, "
              f"up to ${tier['max_credit_per_stay']:,} per stay")
    print()


def run_passport(email: str, engine, as_json: bool = False) -> int:
    """Fetch a contact and deals, print tier and reservations"""
    client = HubSpotClient()
    try:
        contact = client.find_contact_by_email(email)
        if not contact:
            print(f"❌ Contact {email} not found!")
            return 1
        deals = client.find_deals_for_contact(contact["id"])
    except CRMError as e:
        print(f"❌ CRM error: {e}")
        return 2

    properties = contact.get("properties") or {}
    points_alias = FieldAlias("lifetime_points", tuple(settings.LIFETIME_POINTS_PROPERTIES))
    voyage_points = coerce_non_negative(points_alias.resolve(properties))
    # No annual figure on the command line: lifetime points stand in
    assessment = engine.assess(voyage_points, voyage_points)
    result = normalize_with_report(deals, datetime.now())

    if as_json:
        print(json.dumps({
            "email": email,
            "contact_id": contact.get("id"),
            "tier_info": assessment.to_dict(),
            "reservations": [r.to_dict() for r in result.reservations],
            "skipped": [s.to_dict() for s in result.skipped],
        }, indent=2, default=str))
        return 0

    print(f"\n{'='*60}")
    print(f"  VOYAGE PASSPORT")
    print(f"  {properties.get('firstname', '')} {properties.get('lastname', '')} <{email}>")
    print(f"{'='*60}\n")

    current = assessment.current_tier.name if assessment.current_tier else "None yet"
    print(f"🏅 Tier: {current}")
    print(f"   → Voyage Points: {voyage_points:,.0f}")
    if assessment.next_tier:
        print(f"   → Next: {assessment.next_tier.name} "
              f"({assessment.progress_percentage:.1f}%, "
              f"{assessment.points_to_next_tier:,} to go)")
    print(f"   → Voyage Bucks earned: ${assessment.rewards_currency_earned:,}")

    print(f"\n🏡 Reservations ({len(result.reservations)})")
    for r in result.reservations:
        dates = f"{r.check_in or '?'} → {r.check_out or '?'}"
        where = f", {r.location}" if r.location else ""
        print(f"   [{r.status.value:8}] {r.property_name}{where}  {dates}  #{r.confirmation_number}")
    if result.skipped:
        print(f"   ({result.skipped_count} deal(s) skipped)")
    print()
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Voyage Passport CLI"
    )
    parser.add_argument(
        "--email",
        type=str,
        help="Show the passport and reservations for a contact"
    )
    parser.add_argument(
        "--tiers",
        action="store_true",
        help="Show the tier table"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of a summary"
    )

    args = parser.parse_args()

    configure_logging(log_level="WARNING", json_format=False)
    engine = create_tier_engine(settings.TIER_CONFIG_PATH or None)

    if args.tiers:
        show_tiers(engine)
    elif args.email:
        sys.exit(run_passport(args.email, engine, as_json=args.json))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
