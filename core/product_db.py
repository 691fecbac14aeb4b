"""
Product Database Manager
Stores imported/edited Shopify product JSON and bulk-edit history items
"""

import sqlite3
import json
import os
from datetime import datetime
from typing import Optional, Dict, List, Any, Set
import logging

logger = logging.getLogger(__name__)

HISTORY_STATUS_PROCESSING = 'Processing'
HISTORY_STATUS_COMPLETED = 'Completed'

HISTORY_FIELDS = (
    'status', 'type', 'name', 'total_products', 'products_processed',
    'tokens', 'output_file',
)


class ProductDatabase:
    """Manage product rows and bulk-edit history"""

    def __init__(self, db_path: str = None):
        """Initialize product database"""
        if db_path is None:
            from config.settings import get_settings
            db_path = get_settings().DATABASE_PATH

        self.db_path = db_path
        self._init_database()
        logger.info(f"✅ Product database initialized: {db_path}")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self):
        """Create database tables if they don't exist"""
        directory = os.path.dirname(os.path.abspath(self.db_path))
        os.makedirs(directory, exist_ok=True)

        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS products (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                title TEXT,
                price REAL,
                image TEXT,
                source_type TEXT,
                source_platform TEXT,
                source_country TEXT,
                store_id TEXT,
                source_domain TEXT,
                in_app_tags TEXT,
                language TEXT,
                ranking INTEGER,
                edit_type TEXT,
                import_id TEXT,
                original_product_id INTEGER,
                product_data TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')
        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_products_user ON products(user_id)
        ''')
        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_products_import ON products(import_id)
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS history_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                bulkeditid TEXT NOT NULL,
                status TEXT,
                type TEXT,
                name TEXT,
                total_products INTEGER DEFAULT 0,
                products_processed INTEGER DEFAULT 0,
                tokens INTEGER DEFAULT 0,
                output_file TEXT DEFAULT '',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(user_id, bulkeditid)
            )
        ''')

        conn.commit()
        conn.close()

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    @staticmethod
    def _decode_product_row(row: sqlite3.Row) -> Dict[str, Any]:
        item = dict(row)
        for key, default in (('product_data', {}), ('in_app_tags', [])):
            value = item.get(key)
            if isinstance(value, str):
                try:
                    item[key] = json.loads(value)
                except json.JSONDecodeError:
                    logger.warning(f"⚠️  Product {item.get('id')} has invalid {key} JSON")
                    item[key] = default
            elif value is None:
                item[key] = default
        return item

    def insert_product(self, user_id: str, product_data: Dict[str, Any],
                       original_product_id: Optional[int] = None,
                       source_type: str = 'Import', source_platform: Optional[str] = None,
                       source_country: Optional[str] = None, edit_type: str = 'ai-edit',
                       import_id: Optional[str] = None, store_id: Optional[str] = None,
                       in_app_tags: Optional[List[str]] = None,
                       language: Optional[str] = None) -> Dict[str, Any]:
        """
        Insert a product row built from Shopify product JSON.

        Args:
            user_id: Owner of the row
            product_data: {"product": {...}} Shopify product payload

        Returns:
            The inserted row with product_data decoded
        """
        product = (product_data or {}).get('product') or {}
        variants = product.get('variants') or []
        try:
            price = float((variants[0].get('price') if variants else None) or 0)
        except (TypeError, ValueError):
            price = 0.0
        image = (product.get('image') or {}).get('src') or ''

        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute('''
            INSERT INTO products (
                user_id, title, price, image, source_type, source_platform,
                source_country, store_id, source_domain, in_app_tags, language,
                ranking, edit_type, import_id, original_product_id, product_data
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, ?, ?, ?, ?)
        ''', (
            user_id,
            product.get('title') or '',
            price,
            image,
            source_type,
            source_platform,
            source_country,
            store_id,
            product.get('source_domain'),
            json.dumps(in_app_tags or []),
            language,
            edit_type,
            import_id,
            original_product_id,
            json.dumps(product_data),
        ))
        product_id = cursor.lastrowid
        conn.commit()

        cursor.execute('SELECT * FROM products WHERE id = ?', (product_id,))
        row = cursor.fetchone()
        conn.close()

        return self._decode_product_row(row)

    def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute('SELECT * FROM products WHERE id = ?', (product_id,))
        row = cursor.fetchone()
        conn.close()

        return self._decode_product_row(row) if row else None

    def get_products_by_ids(self, product_ids: List[int]) -> List[Dict[str, Any]]:
        """Get products by id list, ordered by id"""
        if not product_ids:
            return []

        conn = self._connect()
        cursor = conn.cursor()

        placeholders = ','.join('?' * len(product_ids))
        cursor.execute(f'''
            SELECT * FROM products
            WHERE id IN ({placeholders})
            ORDER BY id
        ''', list(product_ids))
        rows = cursor.fetchall()
        conn.close()

        return [self._decode_product_row(row) for row in rows]

    def get_products_by_import(self, import_id: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get all products written by one import or bulk edit"""
        conn = self._connect()
        cursor = conn.cursor()

        if user_id:
            cursor.execute('''
                SELECT * FROM products WHERE import_id = ? AND user_id = ? ORDER BY id
            ''', (import_id, user_id))
        else:
            cursor.execute('SELECT * FROM products WHERE import_id = ? ORDER BY id', (import_id,))
        rows = cursor.fetchall()
        conn.close()

        return [self._decode_product_row(row) for row in rows]

    def get_edited_original_ids(self, user_id: str, import_id: str) -> Set[int]:
        """Ids of the source products that already have an edited row in this import"""
        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute('''
            SELECT DISTINCT original_product_id FROM products
            WHERE import_id = ? AND user_id = ? AND original_product_id IS NOT NULL
        ''', (import_id, user_id))
        ids = {row['original_product_id'] for row in cursor.fetchall()}
        conn.close()

        return ids

    # ------------------------------------------------------------------
    # History items
    # ------------------------------------------------------------------

    def get_history(self, user_id: str, bulkeditid: str) -> Optional[Dict[str, Any]]:
        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute('''
            SELECT * FROM history_items WHERE user_id = ? AND bulkeditid = ?
        ''', (user_id, bulkeditid))
        row = cursor.fetchone()
        conn.close()

        return dict(row) if row else None

    def create_or_update_history(self, user_id: str, bulkeditid: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert the history item, or update the given fields when it exists"""
        fields = {k: v for k, v in (data or {}).items() if k in HISTORY_FIELDS}
        ignored = set(data or {}) - set(fields)
        if ignored:
            logger.debug(f"  Ignoring unknown history fields: {sorted(ignored)}")

        existing = self.get_history(user_id, bulkeditid)

        conn = self._connect()
        cursor = conn.cursor()
        if existing is None:
            columns = ['user_id', 'bulkeditid'] + list(fields)
            placeholders = ','.join('?' * len(columns))
            cursor.execute(
                f"INSERT INTO history_items ({', '.join(columns)}) VALUES ({placeholders})",
                [user_id, bulkeditid] + list(fields.values())
            )
        elif fields:
            assignments = ', '.join(f"{k} = ?" for k in fields)
            cursor.execute(
                f'''UPDATE history_items SET {assignments}, updated_at = ?
                    WHERE user_id = ? AND bulkeditid = ?''',
                list(fields.values()) + [datetime.now().isoformat(), user_id, bulkeditid]
            )
        conn.commit()
        conn.close()

        return self.get_history(user_id, bulkeditid)

    def increment_products_processed(self, user_id: str, bulkeditid: str, increment_by: int) -> bool:
        """Atomically add to products_processed"""
        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute('''
            UPDATE history_items
            SET products_processed = products_processed + ?, updated_at = ?
            WHERE user_id = ? AND bulkeditid = ?
        ''', (increment_by, datetime.now().isoformat(), user_id, bulkeditid))
        updated = cursor.rowcount > 0
        conn.commit()
        conn.close()

        if not updated:
            logger.warning(f"⚠️  No history item for {user_id}/{bulkeditid}")
        return updated

    def add_tokens(self, user_id: str, bulkeditid: str, tokens: int) -> bool:
        """Atomically add completion token usage to a history item"""
        if not tokens:
            return False

        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute('''
            UPDATE history_items
            SET tokens = tokens + ?, updated_at = ?
            WHERE user_id = ? AND bulkeditid = ?
        ''', (tokens, datetime.now().isoformat(), user_id, bulkeditid))
        updated = cursor.rowcount > 0
        conn.commit()
        conn.close()
        return updated

    def complete_history_if_done(self, user_id: str, bulkeditid: str) -> bool:
        """Mark the history item Completed once every product was processed"""
        history = self.get_history(user_id, bulkeditid)
        if not history:
            return False

        if (history.get('products_processed') or 0) >= (history.get('total_products') or 0):
            self.create_or_update_history(user_id, bulkeditid, {'status': HISTORY_STATUS_COMPLETED})
            logger.info(f"✅ Bulk edit {bulkeditid} completed ({history['products_processed']} products)")
            return True
        return False


# Singleton instance
_product_db_instance = None


def get_product_db() -> ProductDatabase:
    """Get singleton product database instance"""
    global _product_db_instance
    if _product_db_instance is None:
        _product_db_instance = ProductDatabase()
    return _product_db_instance
