from datetime import datetime, timezone

import pytest

import catalog
from database import MemoryStore
from schemas import Product

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_product(store):
    def _make(name="Silk Kurta", price=999.0, stock=20, category="fashion", **extra):
        return catalog.create_product(
            store, Product(name=name, price=price, stock=stock, category=category, **extra)
        )
    return _make
