import sqlite3

from conftest import make_product
from core.product_db import ProductDatabase


def test_creates_parent_directory(tmp_path):
    path = tmp_path / 'nested' / 'dir' / 'products.db'
    ProductDatabase(db_path=str(path))
    assert path.exists()


def test_insert_product_denormalizes_columns(db):
    row = db.insert_product('user-1', {'product': make_product(price='12.5')},
                            original_product_id=7, import_id='imp-1', in_app_tags=['a'], language='de')

    assert row['title'] == 'Linen Shirt'
    assert row['price'] == 12.5
    assert row['image'] == 'https://cdn.example.com/shirt.jpg'
    assert row['original_product_id'] == 7
    assert row['import_id'] == 'imp-1'
    assert row['in_app_tags'] == ['a']
    assert row['language'] == 'de'
    assert row['edit_type'] == 'ai-edit'
    assert row['product_data']['product']['handle'] == 'linen-shirt'


def test_insert_product_without_variants(db):
    row = db.insert_product('user-1', {'product': {'title': 'Bare'}})
    assert row['price'] == 0
    assert row['image'] == ''


def test_get_products_by_ids_orders_by_id_and_ignores_missing(db, seeded_products):
    ids = [row['id'] for row in seeded_products]
    rows = db.get_products_by_ids([ids[2], 12345, ids[0]])
    assert [row['id'] for row in rows] == [ids[0], ids[2]]
    assert db.get_products_by_ids([]) == []


def test_invalid_product_json_decodes_to_empty(db):
    conn = sqlite3.connect(db.db_path)
    conn.execute("INSERT INTO products (user_id, product_data) VALUES ('u', 'not json')")
    conn.commit()
    conn.close()

    rows = db.get_products_by_ids([1])
    assert rows[0]['product_data'] == {}


def test_get_products_by_import_filters_user(db):
    db.insert_product('user-1', {'product': make_product()}, import_id='imp')
    db.insert_product('user-2', {'product': make_product()}, import_id='imp')

    assert len(db.get_products_by_import('imp')) == 2
    assert [row['user_id'] for row in db.get_products_by_import('imp', user_id='user-2')] == ['user-2']


def test_history_create_update_and_unknown_fields(db):
    created = db.create_or_update_history('user-1', 'b1', {
        'status': 'Processing', 'total_products': 4, 'bogus': 'x'})
    assert created['status'] == 'Processing'
    assert created['products_processed'] == 0
    assert 'bogus' not in created

    updated = db.create_or_update_history('user-1', 'b1', {'name': 'Renamed'})
    assert updated['name'] == 'Renamed'
    assert updated['total_products'] == 4


def test_history_counters_and_completion(db):
    db.create_or_update_history('user-1', 'b1', {'status': 'Processing', 'total_products': 3})

    assert db.increment_products_processed('user-1', 'b1', 2)
    assert db.add_tokens('user-1', 'b1', 15)
    assert not db.add_tokens('user-1', 'b1', 0)
    assert not db.complete_history_if_done('user-1', 'b1')

    db.increment_products_processed('user-1', 'b1', 1)
    assert db.complete_history_if_done('user-1', 'b1')

    history = db.get_history('user-1', 'b1')
    assert history['products_processed'] == 3
    assert history['tokens'] == 15
    assert history['status'] == 'Completed'


def test_counters_on_missing_history(db):
    assert not db.increment_products_processed('nobody', 'none', 1)
    assert not db.complete_history_if_done('nobody', 'none')
    assert db.get_history('nobody', 'none') is None


def test_get_edited_original_ids(db, seeded_products):
    db.insert_product('user-1', {'product': make_product()}, original_product_id=seeded_products[0]['id'],
                      import_id='b1')
    db.insert_product('user-2', {'product': make_product()}, original_product_id=seeded_products[1]['id'],
                      import_id='b1')

    assert db.get_edited_original_ids('user-1', 'b1') == {seeded_products[0]['id']}
    assert db.get_edited_original_ids('user-1', 'other') == set()
