import csv
import io
import json

from conftest import make_product
from core.shopify_csv import SHOPIFY_CSV_HEADERS, generate_shopify_csv, product_rows


def parse(text):
    return list(csv.DictReader(io.StringIO(text)))


def test_header_only_for_no_products():
    text = generate_shopify_csv([])
    assert text.splitlines() == [','.join(f'"{h}"' for h in SHOPIFY_CSV_HEADERS)]


def test_every_cell_is_quoted():
    text = generate_shopify_csv([{'product_data': {'product': make_product(variants=1)}}])
    data_line = text.splitlines()[1]
    assert data_line.startswith('"linen-shirt","Linen Shirt"')


def test_product_columns_only_on_first_variant_row():
    rows = parse(generate_shopify_csv([{'product_data': {'product': make_product(variants=3)}}]))

    assert len(rows) == 3
    assert [row['Handle'] for row in rows] == ['linen-shirt'] * 3
    assert rows[0]['Title'] == 'Linen Shirt'
    assert rows[0]['Vendor'] == 'Acme'
    assert rows[0]['Option1 Name'] == 'Size'
    assert rows[1]['Title'] == ''
    assert rows[1]['Option1 Name'] == ''
    assert [row['Option1 Value'] for row in rows] == ['S', 'M', 'L']
    assert [row['Variant SKU'] for row in rows] == ['LS-0', 'LS-1', 'LS-2']


def test_seo_description_falls_back_to_stripped_body():
    rows = product_rows(make_product(variants=1))
    assert rows[0]['SEO Title'] == 'Linen Shirt'
    assert rows[0]['SEO Description'] == 'Soft linen shirt.'

    rows = product_rows(make_product(variants=1, seo_description='Custom'))
    assert rows[0]['SEO Description'] == 'Custom'


def test_variant_values_after_edit():
    product = make_product(variants=1, g_category='Apparel', g_label0='sale')
    product['variants'][0].update({
        'price': '19.9', 'compare_at_price': '29.95', 'inventory_quantity': 4,
        'inventory_policy': 'continue', 'inventory_management': 'shopify', 'barcode': '123',
    })

    row = product_rows(product)[0]

    assert row['Variant Price'] == '19.90'
    assert row['Variant Compare At Price'] == '29.95'
    assert row['Variant Inventory Qty'] == 4
    assert row['Variant Inventory Policy'] == 'continue'
    assert row['Variant Inventory Tracker'] == 'shopify'
    assert row['Variant Barcode'] == '123'
    assert row['Google Shopping / Google Product Category'] == 'Apparel'
    assert row['Google Shopping / Custom Label 0'] == 'sale'


def test_variant_images_are_matched_by_id():
    rows = product_rows(make_product(variants=2))
    assert rows[0]['Variant Image'] == 'https://cdn.example.com/shirt.jpg'
    assert json.loads(rows[0]['Image Variant IDs']) == [500]
    assert json.loads(rows[1]['Image Variant IDs']) == []


def test_accepts_json_strings_and_skips_bad_rows():
    products = [
        {'product_data': json.dumps({'product': make_product(variants=1)})},
        {'product_data': 'not json'},
        {'product_data': {}},
        {'product_data': {'product': {'title': 'No variants'}}},
    ]
    assert len(parse(generate_shopify_csv(products))) == 1
