#!/usr/bin/env python3
"""
Tests for the multi-store search aggregator
"""

import asyncio
import time
from decimal import Decimal

import pytest
from aiohttp import test_utils, web

from conftest import FakeProviderClient, raw
from src.aggregation.search import SearchAggregator, filter_by_term
from src.errors import ProviderMalformedResponse, ProviderUnreachable
from src.providers.base import Provider
from src.providers.client import ProviderClient
from src.providers.registry import ProviderRegistry
from src.results import StatusHint

A = 'http://a.test/store/'
B = 'http://b.test/store/'
C = 'http://c.test/store/'


def run_search(registry, responses, term, delays=None):
    client = FakeProviderClient(responses, delays)
    result = asyncio.run(SearchAggregator(registry, client).search_all_providers(term))
    return result, client


def test_milk_scenario_one_provider_down(registry):
    result, _ = run_search(registry, {
        A: [raw(1, 'Milk 1L', 5.2)],
        B: [raw(9, 'Organic Milk', 6.0)],
        C: ProviderUnreachable('C could not be reached', 'C'),
    }, 'milk')

    assert result.success
    assert result.status_hint is StatusHint.OK
    assert [(p.price, p.provider_name) for p in result.data] == [(Decimal('5.2'), 'A'), (Decimal('6.0'), 'B')]
    assert result.data[0].provider_endpoint == A
    assert result.diagnostics == ({'provider': 'C', 'kind': 'ProviderUnreachable', 'message': 'C could not be reached'},)


def test_results_are_sorted_by_price_across_providers(registry):
    result, _ = run_search(registry, {
        A: [raw(1, 'Milk', 7), raw(2, 'Milk light', 1.5)],
        B: [raw(3, 'Milk bio', 3)],
        C: [raw(4, 'Milk goat', 2.25)],
    }, 'milk')

    prices = [p.price for p in result.data]
    assert prices == sorted(prices)
    assert [p.provider_product_id for p in result.data] == [2, 4, 3, 1]


def test_equal_prices_keep_provider_order(registry):
    # B answers first but A comes first in configuration
    result, _ = run_search(registry, {
        A: [raw(1, 'Milk', 5), raw(2, 'Milk too', 5)],
        B: [raw(3, 'Milk', 5)],
        C: [],
    }, 'milk', delays={A: 0.05})

    assert [(p.provider_name, p.provider_product_id) for p in result.data] == [('A', 1), ('A', 2), ('B', 3)]


def test_term_is_normalized_and_matched_as_substring(registry):
    result, client = run_search(registry, {
        A: [raw(1, 'Chocolate MILKSHAKE', 3), raw(2, 'Bread', 1)],
        B: [raw(3, 'Semi-skimmed milk', 2)],
        C: [raw(4, 'Oat drink', 2)],
    }, '  MiLk ')

    assert {call[1] for call in client.calls} == {'milk'}
    assert [p.provider_product_id for p in result.data] == [3, 1]
    assert all('milk' in p.name.lower() for p in result.data)


def test_matching_is_not_tokenized(registry):
    result, _ = run_search(registry, {
        A: [raw(1, 'Milk chocolate', 3), raw(2, 'Chocolate milk', 2)],
        B: [],
        C: [],
    }, 'chocolate milk')

    assert [p.provider_product_id for p in result.data] == [2]


def test_one_call_per_provider(registry):
    _, client = run_search(registry, {A: [], B: [], C: [raw(1, 'Milk', 1)]}, 'milk')

    assert sorted(call[0] for call in client.calls) == [A, B, C]


def test_no_matching_products_is_not_found(registry):
    result, _ = run_search(registry, {
        A: [raw(1, 'Bread', 1)],
        B: [],
        C: ProviderMalformedResponse('C returned no result pages', 'C'),
    }, 'milk')

    assert not result.success
    assert result.status_hint is StatusHint.NOT_FOUND
    assert result.error_kind == 'NotFound'
    assert result.diagnostics[0]['kind'] == 'ProviderMalformedResponse'


def test_all_providers_failing_is_not_not_found(registry):
    result, _ = run_search(registry, {
        A: ProviderUnreachable('A timed out after 10s', 'A'),
        B: ProviderMalformedResponse('B returned a body that is not JSON', 'B'),
        C: ProviderUnreachable('C answered with HTTP 500', 'C'),
    }, 'milk')

    assert not result.success
    assert result.error_kind == 'AllProvidersUnreachable'
    assert result.status_hint is StatusHint.UPSTREAM
    assert len(result.diagnostics) == 3


def test_blank_term_is_rejected_without_calls(registry):
    result, client = run_search(registry, {A: [], B: [], C: []}, '   ')

    assert result.error_kind == 'ValidationError'
    assert result.status_hint is StatusHint.BAD_INPUT
    assert client.calls == []


def test_envelope_uses_wire_names(registry):
    result, _ = run_search(registry, {A: [raw(1, 'Milk 1L', 5.2, 'http://img/1.png')], B: [], C: []}, 'milk')

    body = result.to_dict()

    assert body['status'] == 200
    assert body['data'] == [{
        'id': 1, 'name': 'Milk 1L', 'price': 5.2, 'imageUrl': 'http://img/1.png', 'store': 'A', 'url': A,
    }]


def test_filter_by_term_keeps_order():
    products = [raw(1, 'Milk', 3), raw(2, 'Water', 1), raw(3, 'milk 2', 2)]

    assert [p.provider_product_id for p in filter_by_term(products, 'milk')] == [1, 3]


def test_cancelling_search_abandons_slow_providers(registry):
    client = FakeProviderClient({A: [], B: [], C: []}, delays={A: 5, B: 5, C: 5})

    async def cancel_midway():
        task = asyncio.ensure_future(SearchAggregator(registry, client).search_all_providers('milk'))
        await asyncio.sleep(0.05)
        started = time.perf_counter()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        elapsed = time.perf_counter() - started
        await asyncio.sleep(0)
        pending = [t for t in asyncio.all_tasks() if t is not asyncio.current_task() and not t.done()]
        return elapsed, pending

    elapsed, pending = asyncio.run(cancel_midway())

    assert elapsed < 1
    assert pending == []
    assert len(client.calls) == 3


# ============= Live HTTP stores =============

MILK_PAGE = '{"results": [{"products": [{"id": 1, "name": "Milk 1L", "price": 5.2, "imageUrl": ""}]}], "totalProducts": 1}'
NAN_PAGE = '{"results": [{"products": [{"id": 9, "name": "Milk", "price": NaN, "imageUrl": ""}]}], "totalProducts": 1}'


async def serve_stores(pages, call):
    """Serve one JSON page per store under /<store>/search and run `call(base_url)`."""
    app = web.Application()
    for store, page in pages.items():
        async def handler(request, page=page):
            return web.Response(text=page, content_type='application/json')
        app.router.add_get(f'/{store}/search', handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        return await call(str(server.make_url('/')))
    finally:
        await server.close()


def test_store_with_non_finite_price_is_isolated():
    async def call(base):
        registry = ProviderRegistry([
            Provider(name='A', endpoint=base + 'a/'),
            Provider(name='B', endpoint=base + 'b/'),
        ])
        return await SearchAggregator(registry, ProviderClient(timeout=5)).search_all_providers('milk')

    result = asyncio.run(serve_stores({'a': MILK_PAGE, 'b': NAN_PAGE}, call))

    assert result.success
    assert [(p.provider_name, p.price) for p in result.data] == [('A', Decimal('5.2'))]
    assert [(d['provider'], d['kind']) for d in result.diagnostics] == [('B', 'ProviderMalformedResponse')]
