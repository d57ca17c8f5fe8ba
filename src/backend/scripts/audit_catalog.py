"""
Audit the property catalog for entries that confuse name resolution.
Run with: python scripts/audit_catalog.py [name ...]

With names given, also shows how each one resolves.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.config import settings
from app.services.repository import ReservationRepository
from app.services.resolver import audit_catalog, rank, resolve
from app.utils.errors import CatalogUnavailable
from app.utils.supabase import get_supabase_client


def print_audit(report: dict) -> None:
    print("=" * 60)
    print("Maria Faz Property Catalog Audit")
    print("=" * 60)
    print(f"\nProperties: {report['total_properties']}")

    print(f"\nPotential duplicates: {len(report['potential_duplicates'])}")
    for item in report['potential_duplicates']:
        print(f"  → {item['names'][0]!r} / {item['names'][1]!r} (score {item['score']})")

    print(f"\nWithout aliases: {len(report['missing_aliases'])}")
    for item in report['missing_aliases']:
        print(f"  → [{item['property_id']}] {item['name']}")

    print(f"\nShared aliases: {len(report['shared_aliases'])}")
    for item in report['shared_aliases']:
        print(f"  → {item['alias']!r} used by {item['property_ids']}")

    print(f"\nSuspicious names: {len(report['suspicious_names'])}")
    for item in report['suspicious_names']:
        print(f"  → [{item['property_id']}] {item['name']!r}")

    if report['recommendations']:
        print("\nRecommendations:")
        for recommendation in report['recommendations']:
            print(f"  • {recommendation}")


def main(names):
    print(f"Supabase URL: {settings.SUPABASE_URL}\n")

    try:
        catalog = ReservationRepository(get_supabase_client()).get_property_catalog()
    except CatalogUnavailable as e:
        print(f"✗ {e}")
        return 1

    print_audit(audit_catalog(catalog))

    for name in names:
        match = resolve(name, catalog, min_score=settings.MATCH_MIN_SCORE)
        print(f"\n{name!r}:")
        if match:
            print(f"  ✓ {match.property_name} ({match.match_type.value}, score {match.score})")
        else:
            print("  ✗ no match above threshold")
        for candidate in rank(name, catalog):
            print(f"    - {candidate.property_name}: {candidate.score} ({candidate.match_type.value})")

    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
