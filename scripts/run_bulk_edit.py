#!/usr/bin/env python3
"""
Run a Bulk Edit from the Command Line

Applies a bulk-edit settings file to stored products, in the foreground.

Usage:
    python scripts/run_bulk_edit.py --settings edit.json --user USER_ID --ids 1 2 3
    python scripts/run_bulk_edit.py --settings edit.json --user USER_ID --import-id 1718000000000
"""

import os
import sys
import json
import argparse
import logging

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, REPO_ROOT)

from dotenv import load_dotenv
load_dotenv(os.path.join(REPO_ROOT, '.env'))

from config.settings import get_settings
from core.batch_optimizer import BulkEditProcessor, start_bulk_edit
from core.completion import get_completion_service
from core.product_db import ProductDatabase
from core.task_queue import SynchronousTaskQueue


def main():
    parser = argparse.ArgumentParser(description='Run a bulk edit on stored products')
    parser.add_argument('--settings', required=True, help='Bulk edit settings JSON file')
    parser.add_argument('--user', required=True, help='User id (UID)')
    parser.add_argument('--ids', type=int, nargs='*', default=[], help='Product ids to edit')
    parser.add_argument('--import-id', default=None, help='Edit every product of this import')
    parser.add_argument('--db', default=None, help='SQLite database path (default: DATABASE_PATH)')

    args = parser.parse_args()
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')

    with open(args.settings, 'r', encoding='utf-8') as f:
        edit_settings = json.load(f)

    db = ProductDatabase(db_path=args.db or settings.DATABASE_PATH)

    product_ids = list(args.ids)
    if args.import_id:
        product_ids.extend(row['id'] for row in db.get_products_by_import(args.import_id, user_id=args.user))

    if not product_ids:
        print("Error: no products selected (use --ids or --import-id).")
        sys.exit(1)

    processor = BulkEditProcessor(
        db,
        completion_factory=lambda: get_completion_service(settings),
        progress_every=settings.PROGRESS_REPORT_EVERY,
    )

    try:
        result = start_bulk_edit(
            product_ids,
            {'UID': args.user},
            edit_settings,
            db=db,
            queue=SynchronousTaskQueue(),
            processor=processor,
            batch_size=settings.BATCH_SIZE,
        )
    except Exception as e:
        print(f"\n❌ Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    history = db.get_history(args.user, result['bulkeditid'])
    print(f"\nBulk edit {result['bulkeditid']}: {history['status']} "
          f"({history['products_processed']}/{history['total_products']} products, "
          f"{history['tokens']} tokens)")


if __name__ == "__main__":
    main()
