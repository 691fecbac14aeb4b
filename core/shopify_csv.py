"""
Shopify CSV Export
Builds a Shopify product import CSV from stored product rows.
"""

import csv
import io
import json
import re
from typing import Dict, Any, List

SHOPIFY_CSV_HEADERS = [
    "Handle",
    "Title",
    "Body (HTML)",
    "Vendor",
    "Product Category",
    "Type",
    "Tags",
    "Published",
    "Option1 Name",
    "Option1 Value",
    "Option1 Linked To",
    "Option2 Name",
    "Option2 Value",
    "Option2 Linked To",
    "Option3 Name",
    "Option3 Value",
    "Option3 Linked To",
    "Variant SKU",
    "Variant Grams",
    "Variant Inventory Tracker",
    "Variant Inventory Qty",
    "Variant Inventory Policy",
    "Variant Fulfillment Service",
    "Variant Price",
    "Variant Compare At Price",
    "Variant Requires Shipping",
    "Variant Taxable",
    "Variant Barcode",
    "Image Src",
    "Image Position",
    "Image Alt Text",
    "Gift Card",
    "SEO Title",
    "SEO Description",
    "Google Shopping / Google Product Category",
    "Google Shopping / Gender",
    "Google Shopping / Age Group",
    "Google Shopping / MPN",
    "Google Shopping / Condition",
    "Google Shopping / Custom Product",
    "Google Shopping / Custom Label 0",
    "Google Shopping / Custom Label 1",
    "Google Shopping / Custom Label 2",
    "Google Shopping / Custom Label 3",
    "Google Shopping / Custom Label 4",
    "Variant Image",
    "Variant Weight Unit",
    "Variant Tax Code",
    "Cost per item",
    "Status",
    "Variant Shopify ID",
    "Image Variant IDs",
]

SEO_DESCRIPTION_LENGTH = 160

_TAG_RE = re.compile(r'<[^>]+>')


def _money(value: Any) -> str:
    try:
        return f"{float(value or 0):.2f}"
    except (TypeError, ValueError):
        return "0.00"


def _bool_cell(value: Any) -> str:
    return "TRUE" if value else "FALSE"


def _variant_image_map(images: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    mapping: Dict[str, List[Dict[str, Any]]] = {}
    for img in images:
        for variant_id in img.get('variant_ids') or []:
            mapping.setdefault(str(variant_id), []).append(img)
    return mapping


def product_rows(product: Dict[str, Any]) -> List[Dict[str, Any]]:
    """CSV rows for one Shopify product; product-level columns only on the first row"""
    variants = product.get('variants')
    if not isinstance(variants, list):
        return []

    handle = product.get('handle') or ''
    option_names = [opt.get('name') or '' for opt in product.get('options') or []]
    default_image = (product.get('image') or {}).get('src') or ''
    images = product.get('images') if isinstance(product.get('images'), list) else []
    image_map = _variant_image_map(images)

    seo_title = product.get('seo_title') or product.get('title') or ''
    seo_description = product.get('seo_description') or \
        _TAG_RE.sub('', product.get('body_html') or '')[:SEO_DESCRIPTION_LENGTH]

    rows = []
    for i, variant in enumerate(variants):
        first = i == 0
        matching = image_map.get(str(variant.get('id')), [])
        first_image = matching[0] if matching else (images[i] if i < len(images) else None)

        def head(value):
            return value if first else ''

        row = {
            "Handle": handle,
            "Title": head(product.get('title') or ''),
            "Body (HTML)": head(product.get('body_html') or ''),
            "Vendor": head(product.get('vendor') or ''),
            "Product Category": head(product.get('product_category') or ''),
            "Type": head(product.get('product_type') or ''),
            "Tags": head(product.get('tags') or ''),
            "Published": head(_bool_cell(product.get('published', True))),
            "Option1 Name": head(option_names[0] if len(option_names) > 0 else ''),
            "Option1 Value": variant.get('option1') or '',
            "Option2 Name": head(option_names[1] if len(option_names) > 1 else ''),
            "Option2 Value": variant.get('option2') or '',
            "Option3 Name": head(option_names[2] if len(option_names) > 2 else ''),
            "Option3 Value": variant.get('option3') or '',
            "Variant SKU": variant.get('sku') or '',
            "Variant Grams": variant.get('grams') or 0,
            "Variant Inventory Tracker": variant.get('inventory_management') or '',
            "Variant Inventory Qty": variant.get('inventory_quantity') or 0,
            "Variant Inventory Policy": variant.get('inventory_policy') or 'deny',
            "Variant Fulfillment Service": variant.get('fulfillment_service') or 'manual',
            "Variant Price": _money(variant.get('price')),
            "Variant Compare At Price": _money(variant['compare_at_price']) if variant.get('compare_at_price') else '',
            "Variant Requires Shipping": _bool_cell(variant.get('requires_shipping')),
            "Variant Taxable": _bool_cell(variant.get('taxable')),
            "Variant Barcode": variant.get('barcode') or '',
            "Image Src": head((first_image or {}).get('src') or default_image),
            "Image Position": head((first_image or {}).get('position') or 1),
            "Image Alt Text": head((first_image or {}).get('alt') or ''),
            "Gift Card": "FALSE",
            "SEO Title": head(seo_title),
            "SEO Description": head(seo_description),
            "Google Shopping / Google Product Category": head(product.get('g_category') or ''),
            "Google Shopping / Gender": head(product.get('g_gender') or ''),
            "Google Shopping / Age Group": head(product.get('g_age_group') or ''),
            "Google Shopping / Condition": head(product.get('g_condition') or ''),
            "Google Shopping / Custom Product": head(product.get('g_custom_product') or ''),
            "Variant Image": (matching[0].get('src') if matching else '') or default_image,
            "Variant Weight Unit": variant.get('weight_unit') or 'kg',
            "Status": product.get('status') or 'active',
            "Variant Shopify ID": variant.get('id') or f"{handle}-{i}",
            "Image Variant IDs": json.dumps([vid for img in matching for vid in (img.get('variant_ids') or [])]),
        }
        for n in range(5):
            row[f"Google Shopping / Custom Label {n}"] = head(product.get(f'g_label{n}') or '')
        rows.append(row)

    return rows


def generate_shopify_csv(products: List[Dict[str, Any]]) -> str:
    """
    Build a Shopify import CSV from stored product rows.

    Args:
        products: Rows with a product_data payload ({"product": {...}}),
            either decoded or as a JSON string

    Returns:
        CSV text, every cell quoted, rows joined with newlines
    """
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=SHOPIFY_CSV_HEADERS, quoting=csv.QUOTE_ALL,
                            restval='', lineterminator='\n')
    writer.writeheader()

    for item in products:
        raw = item.get('product_data')
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                continue
        product = (raw or {}).get('product')
        if not product:
            continue
        writer.writerows(product_rows(product))

    return output.getvalue()
