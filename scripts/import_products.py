#!/usr/bin/env python3
"""
Import Shopify Product JSON into the Product Database

Accepts a storefront products.json export ({"products": [...]}), a single
{"product": {...}} payload, or a plain list of product objects.

Usage:
    python scripts/import_products.py --file products.json --user USER_ID
    python scripts/import_products.py --file products.json --user USER_ID --source-domain shop.example.com
"""

import os
import sys
import json
import argparse
import time
import logging

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, REPO_ROOT)

from dotenv import load_dotenv
load_dotenv(os.path.join(REPO_ROOT, '.env'))

from core.product_db import ProductDatabase
from config.settings import get_settings

logger = logging.getLogger(__name__)


def extract_products(payload):
    """Return the list of product dicts contained in an export payload"""
    if isinstance(payload, list):
        return [p for p in payload if isinstance(p, dict)]
    if isinstance(payload, dict):
        if isinstance(payload.get('products'), list):
            return [p for p in payload['products'] if isinstance(p, dict)]
        if isinstance(payload.get('product'), dict):
            return [payload['product']]
    return []


def main():
    parser = argparse.ArgumentParser(description='Import Shopify product JSON into SQLite')
    parser.add_argument('--file', required=True, help='Path to products JSON file')
    parser.add_argument('--user', required=True, help='User id that owns the imported products')
    parser.add_argument('--db', default=None, help='SQLite database path (default: DATABASE_PATH)')
    parser.add_argument('--source-platform', default='shopify', help='Source platform label')
    parser.add_argument('--source-domain', default=None, help='Store domain the products came from')
    parser.add_argument('--language', default=None, help='Catalog language code')

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    if not os.path.exists(args.file):
        print(f"Error: {args.file} not found.")
        sys.exit(1)

    with open(args.file, 'r', encoding='utf-8') as f:
        payload = json.load(f)

    products = extract_products(payload)
    if not products:
        print("Error: no products found in file.")
        sys.exit(1)

    db = ProductDatabase(db_path=args.db or get_settings().DATABASE_PATH)
    import_id = str(int(time.time() * 1000))

    print("=" * 70)
    print("  Import Shopify Products")
    print("=" * 70)
    print(f"\nFile:      {args.file}")
    print(f"Products:  {len(products):,}")
    print(f"Import id: {import_id}\n")

    imported = 0
    for product in products:
        if args.source_domain and not product.get('source_domain'):
            product['source_domain'] = args.source_domain
        row = db.insert_product(
            user_id=args.user,
            product_data={'product': product},
            source_type='Import',
            source_platform=args.source_platform,
            edit_type='import',
            import_id=import_id,
            language=args.language,
        )
        imported += 1
        logger.info(f"  ✅ {row['id']}: {row['title'][:60]}")

    print(f"\nImported {imported:,} products (import id {import_id})")


if __name__ == "__main__":
    main()
