#!/usr/bin/env python3
"""
Export Bulk Edit Results to a Shopify CSV

Usage:
    python scripts/export_products_csv.py --import-id 1718000000000
    python scripts/export_products_csv.py --import-id 1718000000000 --user USER_ID -o edited.csv
"""

import os
import sys
import argparse

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, REPO_ROOT)

from dotenv import load_dotenv
load_dotenv(os.path.join(REPO_ROOT, '.env'))

from config.settings import get_settings
from core.product_db import ProductDatabase
from core.shopify_csv import generate_shopify_csv


def main():
    parser = argparse.ArgumentParser(description='Export edited products to a Shopify import CSV')
    parser.add_argument('--import-id', required=True, help='Bulk edit or import id')
    parser.add_argument('--user', default=None, help='Only rows owned by this user')
    parser.add_argument('--output', '-o', default=None, help='Output CSV path')
    parser.add_argument('--db', default=None, help='SQLite database path (default: DATABASE_PATH)')

    args = parser.parse_args()

    db = ProductDatabase(db_path=args.db or get_settings().DATABASE_PATH)
    products = db.get_products_by_import(args.import_id, user_id=args.user)
    if not products:
        print(f"Error: no products found for {args.import_id}")
        sys.exit(1)

    output_file = args.output or f"shopify_export_{args.import_id}.csv"
    with open(output_file, 'w', encoding='utf-8', newline='') as f:
        f.write(generate_shopify_csv(products))

    print(f"✅ Exported {len(products)} products to {output_file}")


if __name__ == "__main__":
    main()
