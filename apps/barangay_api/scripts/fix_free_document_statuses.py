#!/usr/bin/env python3
"""
Fix Free Document Statuses

Zero-fee requests approved before free documents skipped payment are stuck
in "Approved" waiting for a payment that will never come. This moves them to
"Payment Verified" with a Free payment record.

Usage:
    python apps/barangay_api/scripts/fix_free_document_statuses.py --dry-run
    python apps/barangay_api/scripts/fix_free_document_statuses.py
    python apps/barangay_api/scripts/fix_free_document_statuses.py --tenant-id 3
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

script_dir = Path(__file__).parent
api_dir = script_dir.parent
project_root = api_dir.parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv(project_root / '.env')


def main():
    parser = argparse.ArgumentParser(description='Promote free approved requests to Payment Verified')
    parser.add_argument('--dry-run', action='store_true', help='List affected requests without changing them')
    parser.add_argument('--tenant-id', type=int, default=None, help='Only fix requests of this barangay')
    args = parser.parse_args()

    from apps.barangay_api.app import create_app
    from apps.barangay_api.utils.request_engine import repair_free_approved

    app = create_app()
    with app.app_context():
        print("\n" + "=" * 50)
        print("  Fix Free Document Statuses" + ("  [DRY RUN]" if args.dry_run else ""))
        print("=" * 50)

        candidates = repair_free_approved(tenant_id=args.tenant_id, dry_run=True)
        if not candidates:
            print("\nNo free requests are stuck in Approved.")
            return 0

        for req in candidates:
            print(f"  - {req.tracking_number} ({req.document_type}, barangay {req.tenant_id})")

        if args.dry_run:
            print(f"\nWould update {len(candidates)} request(s).")
            return 0

        updated = repair_free_approved(tenant_id=args.tenant_id)
        skipped = len(candidates) - len(updated)
        print(f"\nUpdated: {len(updated)}")
        print(f"Skipped: {skipped}")
        print(f"Total:   {len(candidates)}")
        return 0


if __name__ == '__main__':
    sys.exit(main())
