"""
Bulk Edit Pipeline
Splits a bulk edit into batch tasks and applies the configured edits to each
product: organization, variant inventory/pricing, copywriting, Google Shopping
fields and custom metafields. Edited products are stored as new rows linked to
the original and the history item tracks progress.
"""

import copy
import logging
import random
import sqlite3
import threading
import time
from typing import Dict, Any, List, Optional

from config.edit_fields import (
    CUSTOM_LABEL_ATTRS,
    GOOGLE_STATIC_FIELDS,
    TAG_ACTIONS,
    VARIANT_EDIT_FIELDS,
    get_copywriting_fields,
    get_google_edit_fields,
)
from core.completion import CompletionError
from core.edits import apply_edit
from core.product_db import HISTORY_STATUS_PROCESSING
from core.variant_normalizer import INVENTORY_SETTING_KEYS, InventorySettings, normalize_variant

logger = logging.getLogger(__name__)


def split_batches(items: List[Any], batch_size: int) -> List[List[Any]]:
    """Split items into consecutive chunks of batch_size"""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [items[i:i + batch_size] for i in range(0, len(items), batch_size)]


def merge_tags(existing: Optional[str], incoming: Optional[str]) -> str:
    """Comma-joined union of two tag strings, first occurrence order kept"""
    tags = [t.strip() for t in (existing or '').split(',')] + [t.strip() for t in (incoming or '').split(',')]
    return ', '.join(dict.fromkeys(t for t in tags if t))


def build_context(product: Dict[str, Any], now_ms: Optional[int] = None) -> Dict[str, Any]:
    """Template context for one product: its fields plus 'now' and 'description'"""
    context = dict(product)
    context.setdefault('description', product.get('body_html') or '')
    context['now'] = str(now_ms if now_ms is not None else int(time.time() * 1000))
    return context


class UsageTrackingService:
    """Wraps a completion service, creating it on first use and summing token usage"""

    def __init__(self, service=None, factory=None):
        self._service = service
        self._factory = factory
        self._setup_error: Optional[CompletionError] = None
        self._lock = threading.Lock()
        self.tokens = 0
        self.calls = 0

    def _get_service(self):
        with self._lock:
            if self._service is not None:
                return self._service
            if self._setup_error is None:
                if self._factory is None:
                    self._setup_error = CompletionError("No completion service configured", retryable=False)
                else:
                    try:
                        self._service = self._factory()
                        return self._service
                    except (ValueError, CompletionError) as e:
                        logger.error(f"❌ Completion service unavailable: {e}")
                        self._setup_error = CompletionError(
                            f"Completion service unavailable: {e}", retryable=False)
            raise self._setup_error

    def complete(self, request):
        service = self._get_service()
        result = service.complete(request)
        with self._lock:
            self.calls += 1
            self.tokens += getattr(result, 'usage_tokens', 0) or 0
        return result


class BulkEditProcessor:
    """Applies bulk-edit settings to products and records the results"""

    def __init__(self, db, completion_service=None, completion_factory=None,
                 progress_every: int = 5, rng=None):
        """
        Args:
            db: ProductDatabase
            completion_service: Service used for AI edits
            completion_factory: Called lazily when no service was given
            progress_every: Report progress after this many products
            rng: Random source for variant quantities (defaults to random module)
        """
        self.db = db
        self.completion_service = completion_service
        self.completion_factory = completion_factory
        self._factory_service = None
        self._factory_lock = threading.Lock()
        self.progress_every = max(1, progress_every)
        self.rng = rng

    def _shared_completion_service(self):
        """Build the factory service once and reuse it for every batch"""
        with self._factory_lock:
            if self._factory_service is None:
                self._factory_service = self.completion_factory()
            return self._factory_service

    def _tracking_service(self) -> UsageTrackingService:
        factory = self._shared_completion_service if self.completion_factory else None
        return UsageTrackingService(self.completion_service, factory)

    # ------------------------------------------------------------------
    # Field helpers
    # ------------------------------------------------------------------

    def _resolve(self, edit, context: Dict[str, Any], service, label: str) -> Optional[str]:
        """apply_edit, skipping the field when the completion call fails"""
        if not edit:
            return None
        try:
            return apply_edit(edit, context, service)
        except CompletionError as e:
            logger.warning(f"  ⚠️  Skipping {label}: {e}")
            return None

    @staticmethod
    def apply_organization(product: Dict[str, Any], organization: Dict[str, Any]):
        """Vendor, tags, publish state, status and theme template"""
        organization = organization or {}

        product['vendor'] = organization.get('vendor') or product.get('vendor')

        tag_action = organization.get('tagAction')
        if tag_action not in TAG_ACTIONS and tag_action:
            logger.warning(f"  ⚠️  Unknown tag action: {tag_action}")
        if tag_action == 'clear':
            product['tags'] = ''
        elif tag_action == 'replace':
            product['tags'] = organization.get('tags') or ''
        elif tag_action == 'add' and organization.get('tags'):
            product['tags'] = merge_tags(product.get('tags'), organization['tags'])

        if 'published' in organization:
            product['published'] = organization['published']
        product['status'] = organization.get('status') or product.get('status')
        if organization.get('theme_template'):
            product['theme_template'] = organization['theme_template']

    def apply_variants(self, product: Dict[str, Any], inventory_prices: Dict[str, Any],
                       context: Dict[str, Any], service):
        inventory_prices = inventory_prices or {}
        variants = product.get('variants')
        if not isinstance(variants, list):
            return

        inventory_settings = None
        if any(key in inventory_prices for key in INVENTORY_SETTING_KEYS):
            inventory_settings = InventorySettings.from_dict(inventory_prices)

        for variant in variants:
            for key, attr in VARIANT_EDIT_FIELDS.items():
                value = self._resolve(inventory_prices.get(key), context, service, f"variant {key}")
                if value:
                    variant[attr] = value

            if inventory_settings is not None:
                normalize_variant(variant, inventory_settings, rng=self.rng or random)

    def apply_copywriting(self, product: Dict[str, Any], copywriting: Dict[str, Any],
                          context: Dict[str, Any], service):
        copywriting = copywriting or {}
        for field in get_copywriting_fields():
            value = self._resolve(copywriting.get(field.name), context, service, field.name)
            if value:
                product[field.product_attr] = value
                if field.context_key:
                    context[field.context_key] = value

    def apply_google(self, product: Dict[str, Any], google: Dict[str, Any],
                     context: Dict[str, Any], service):
        google = google or {}
        for field in get_google_edit_fields():
            value = self._resolve(google.get(field.name), context, service, f"google {field.name}")
            if value:
                product[field.product_attr] = value

        for key, attr in GOOGLE_STATIC_FIELDS.items():
            product[attr] = google.get(key) or product.get(attr)

        labels = google.get('custom_labels')
        if isinstance(labels, list):
            for attr, edit in zip(CUSTOM_LABEL_ATTRS, labels):
                value = self._resolve(edit, context, service, f"google {attr}")
                product[attr] = value or product.get(attr)

    def apply_metafields(self, product: Dict[str, Any], metafields: List[Dict[str, Any]],
                         context: Dict[str, Any], service):
        if not isinstance(metafields, list):
            return
        product['metafields'] = product.get('metafields') or []
        for mf in metafields:
            if not mf:
                continue
            label = f"metafield {mf.get('namespace', '')}.{mf.get('key', '')}"
            value = self._resolve(mf.get('value'), context, service, label)
            if value:
                product['metafields'].append({**mf, 'value': value})

    def apply_keywords(self, product: Dict[str, Any], keywords_edit, context: Dict[str, Any], service):
        value = self._resolve(keywords_edit, context, service, 'keywords')
        product['keywords'] = [k.strip() for k in (value or '').split(',') if k.strip()]

    def process_product(self, product: Dict[str, Any], settings: Dict[str, Any],
                        service=None) -> Dict[str, Any]:
        """
        Apply every configured edit to a product dict in place.

        Order matters: organization first, then variants, then copywriting
        (which refreshes the context), Google fields, general gender,
        metafields and keywords.
        """
        service = service or self._tracking_service()
        context = build_context(product)

        self.apply_organization(product, settings.get('organization'))
        self.apply_variants(product, settings.get('inventoryPrices'), context, service)
        self.apply_copywriting(product, settings.get('copywriting'), context, service)
        self.apply_google(product, settings.get('google'), context, service)

        gender = self._resolve((settings.get('general') or {}).get('gender'), context, service, 'gender')
        if gender:
            product['gender'] = gender

        self.apply_metafields(product, settings.get('customMetafields'), context, service)
        self.apply_keywords(product, settings.get('keywords'), context, service)
        return product

    # ------------------------------------------------------------------
    # Batch task
    # ------------------------------------------------------------------

    def _report_progress(self, user_id: str, bulkeditid: str, increment: int) -> bool:
        """Add to products_processed; False when the write failed and should be retried later"""
        if increment <= 0:
            return True
        try:
            self.db.increment_products_processed(user_id, bulkeditid, increment)
            return True
        except sqlite3.Error as e:
            logger.error(f"  ❌ Progress update for {bulkeditid} failed: {e}")
            return False

    def _finish_batch(self, user_id: str, bulkeditid: str, tokens: int):
        try:
            self.db.add_tokens(user_id, bulkeditid, tokens)
        except sqlite3.Error as e:
            logger.error(f"  ❌ Token update for {bulkeditid} failed: {e}")
        try:
            self.db.complete_history_if_done(user_id, bulkeditid)
        except sqlite3.Error as e:
            logger.error(f"  ❌ History completion for {bulkeditid} failed: {e}")

    def process_batch(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Process one batch task: {"productIds": [...], "user": {...}, "settings": {...}}.

        Every id in the batch counts towards products_processed, whether it was
        edited, skipped (missing or untitled) or failed. Products that already
        have an edited row for this bulk edit (a redelivered task) are left
        alone and not counted again.

        Returns:
            Summary dict with created/skipped/failed/existing counts and token usage
        """
        product_ids = payload.get('productIds') or []
        user = payload.get('user') or {}
        settings = payload.get('settings') or {}
        user_id = user.get('UID')
        bulkeditid = settings.get('bulkeditid')
        general = settings.get('general') or {}

        logger.info(f"🔄 Bulk edit {bulkeditid}: processing batch of {len(product_ids)} products")

        service = self._tracking_service()
        rows = self.db.get_products_by_ids(product_ids)
        if len(rows) < len(product_ids):
            logger.warning(f"  ⚠️  {len(product_ids) - len(rows)} products not found")

        already_edited = self.db.get_edited_original_ids(user_id, bulkeditid)
        created = skipped = failed = existing = 0
        handled = len(product_ids) - len(rows)
        reported = 0

        for row in rows:
            if row['id'] in already_edited:
                existing += 1
                logger.info(f"  ⏭️  Product {row['id']} already edited in {bulkeditid}")
                continue

            raw = copy.deepcopy(row.get('product_data') or {})
            product = raw.get('product') if isinstance(raw, dict) else None

            if not product or not product.get('title'):
                skipped += 1
            else:
                try:
                    self.process_product(product, settings, service)
                    raw['product'] = product
                    self.db.insert_product(
                        user_id=user_id,
                        product_data=raw,
                        original_product_id=row['id'],
                        source_type=user.get('source_type') or row.get('source_type'),
                        source_platform=row.get('source_platform'),
                        source_country=user.get('source_country') or row.get('source_country'),
                        edit_type='ai-edit',
                        import_id=bulkeditid,
                        store_id=user.get('store_id'),
                        in_app_tags=general.get('in_app_tags') or [],
                        language=general.get('Language'),
                    )
                    created += 1
                except Exception as e:
                    failed += 1
                    logger.error(f"  ❌ Product {row['id']} failed: {e}", exc_info=True)

            handled += 1
            if handled - reported >= self.progress_every:
                if self._report_progress(user_id, bulkeditid, handled - reported):
                    reported = handled

        self._report_progress(user_id, bulkeditid, handled - reported)
        self._finish_batch(user_id, bulkeditid, service.tokens)

        logger.info(f"  ✅ Batch done: {created} created, {skipped} skipped, {failed} failed, "
                    f"{existing} already edited, {service.tokens} tokens")
        return {
            'created': created,
            'skipped': skipped,
            'failed': failed,
            'existing': existing,
            'tokens': service.tokens,
        }


def validate_bulk_edit_request(product_ids: Any, user: Any, settings: Any):
    """Raise ValueError when a bulk edit request is malformed"""
    if not isinstance(product_ids, list):
        raise ValueError("productIds must be a list")
    if not isinstance(user, dict) or not user.get('UID'):
        raise ValueError("user.UID is required")
    if not isinstance(settings, dict):
        raise ValueError("settings object is required")


def start_bulk_edit(product_ids: List[int], user: Dict[str, Any], settings: Dict[str, Any],
                    db, queue, processor: BulkEditProcessor, batch_size: int = 10) -> Dict[str, Any]:
    """
    Create the history item and enqueue one task per batch of product ids.

    Returns:
        {"bulkeditid": ..., "batches": n}
    """
    validate_bulk_edit_request(product_ids, user, settings)

    bulkeditid = str(int(time.time() * 1000))
    user_id = user['UID']
    name = (settings.get('general') or {}).get('name') or 'AI-edit'

    db.create_or_update_history(user_id, bulkeditid, {
        'status': HISTORY_STATUS_PROCESSING,
        'type': 'AI edit',
        'name': name,
        'total_products': len(product_ids),
        'tokens': 0,
        'products_processed': 0,
        'output_file': '',
    })

    batches = split_batches(product_ids, batch_size)
    logger.info(f"📦 Bulk edit {bulkeditid}: {len(product_ids)} products in {len(batches)} batches")

    if not batches:
        db.complete_history_if_done(user_id, bulkeditid)

    for i, batch in enumerate(batches):
        batch_settings = {
            **settings,
            'bulkeditid': bulkeditid,
            'startIndex': i * batch_size,
            'total_products': len(product_ids),
        }
        queue.enqueue(
            f"bulk-edit-{bulkeditid}-{i}",
            processor.process_batch,
            {'productIds': batch, 'user': user, 'settings': batch_settings},
        )

    return {'bulkeditid': bulkeditid, 'batches': len(batches)}
