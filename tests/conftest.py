import random

import pytest

from core.completion import CompletionError, CompletionResult
from core.product_db import ProductDatabase


class FakeCompletionService:
    """Returns canned replies and records every request"""

    def __init__(self, replies=None, default='AI text', tokens=10, error=None):
        self.replies = list(replies or [])
        self.default = default
        self.tokens = tokens
        self.error = error
        self.requests = []

    def complete(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        text = self.replies.pop(0) if self.replies else self.default
        return CompletionResult(text=text, usage_tokens=self.tokens)


class FailingCompletionService(FakeCompletionService):
    def __init__(self):
        super().__init__(error=CompletionError("upstream unavailable"))


def make_product(title='Linen Shirt', price='10.00', variants=2, **extra):
    product = {
        'id': 1001,
        'title': title,
        'body_html': '<p>Soft <strong>linen</strong> shirt.</p>',
        'vendor': 'Acme',
        'product_type': 'Shirts',
        'handle': 'linen-shirt',
        'tags': 'summer, linen',
        'status': 'active',
        'options': [{'name': 'Size', 'position': 1, 'values': ['S', 'M']}],
        'variants': [
            {'id': 500 + i, 'price': price, 'sku': f'LS-{i}', 'option1': ['S', 'M', 'L'][i % 3]}
            for i in range(variants)
        ],
        'images': [{'id': 9, 'src': 'https://cdn.example.com/shirt.jpg', 'position': 1, 'variant_ids': [500]}],
        'image': {'src': 'https://cdn.example.com/shirt.jpg'},
    }
    product.update(extra)
    return product


@pytest.fixture
def db(tmp_path):
    return ProductDatabase(db_path=str(tmp_path / 'products.db'))


@pytest.fixture
def fake_service():
    return FakeCompletionService()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def seeded_products(db):
    rows = [
        db.insert_product('user-1', {'product': make_product(title=f'Product {i}')}, edit_type='import')
        for i in range(3)
    ]
    return rows
