"""
Shared test doubles for provider searches and Supabase storage
"""

import asyncio
import contextlib
from decimal import Decimal
from types import SimpleNamespace

import pytest

from src.models import RawProduct
from src.providers.base import Provider
from src.providers.registry import ProviderRegistry


def raw(product_id, name, price, image_url=''):
    return RawProduct(provider_product_id=product_id, name=name, price=Decimal(str(price)), image_url=image_url)


class FakeProviderClient:
    """
    Stands in for ProviderClient.

    responses maps endpoint -> list of RawProduct, or an exception to raise.
    Every search call is recorded as (endpoint, query, provider_name).
    """

    def __init__(self, responses, delays=None):
        self.responses = responses
        self.delays = delays or {}
        self.calls = []

    def session(self):
        return contextlib.nullcontext()

    async def search(self, endpoint, query, provider_name=None, session=None):
        self.calls.append((endpoint, query, provider_name))
        await asyncio.sleep(self.delays.get(endpoint, 0))
        result = self.responses[endpoint]
        if isinstance(result, Exception):
            raise result
        return list(result)


class _Query:
    def __init__(self, run, db):
        self._run = run
        self._db = db

    async def execute(self):
        self._db.in_flight += 1
        self._db.max_in_flight = max(self._db.max_in_flight, self._db.in_flight)
        try:
            await asyncio.sleep(self._db.latency)
            if self._db.error is not None:
                raise self._db.error
            return SimpleNamespace(data=self._run())
        finally:
            self._db.in_flight -= 1


class _TableQuery(_Query):
    def __init__(self, db, table):
        super().__init__(self._rows, db)
        self._table = table
        self._filters = {}
        self._limit = None

    def select(self, columns):
        self._columns = [column.strip() for column in columns.split(',')]
        return self

    def eq(self, column, value):
        self._filters[column] = value
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _rows(self):
        rows = [
            {column: row[column] for column in self._columns}
            for row in self._db.rows(self._table)
            if all(row.get(column) == value for column, value in self._filters.items())
        ]
        return rows[:self._limit] if self._limit is not None else rows


class FakeSupabase:
    """
    In-memory stand-in for the async Supabase client.

    Implements the `save_product_matches` function with the same semantics
    as sql/schema.sql: lookup-or-create by unique name, then an
    all-or-nothing insert that ignores duplicate matches.
    """

    def __init__(self, latency=0):
        self.canonical_products = []
        self.product_matches = []
        self.rpc_calls = []
        self.error = None
        self.latency = latency
        self.in_flight = 0
        self.max_in_flight = 0

    def rows(self, table):
        return {
            'canonical_products': self.canonical_products,
            'product_matches': self.product_matches,
        }[table]

    def table(self, name):
        return _TableQuery(self, name)

    def rpc(self, function, params):
        self.rpc_calls.append((function, params))
        assert function == 'save_product_matches'
        return _Query(lambda: self._save(params['p_name'], params['p_matches']), self)

    def _save(self, name, matches):
        existing = [row for row in self.canonical_products if row['name'] == name]
        if existing:
            canonical_id = existing[0]['id']
        else:
            canonical_id = len(self.canonical_products) + 1
            self.canonical_products.append({'id': canonical_id, 'name': name})

        for match in matches:
            key = (canonical_id, match['provider_product_id'], match['provider_name'])
            if not any(
                (row['canonical_id'], row['provider_product_id'], row['provider_name']) == key
                for row in self.product_matches
            ):
                self.product_matches.append({'canonical_id': canonical_id, **match})
        return canonical_id


@pytest.fixture
def registry():
    return ProviderRegistry([
        Provider(name='A', endpoint='http://a.test/store/'),
        Provider(name='B', endpoint='http://b.test/store/'),
        Provider(name='C', endpoint='http://c.test/store/'),
    ])


@pytest.fixture
def fake_db():
    return FakeSupabase()
