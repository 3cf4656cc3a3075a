#!/usr/bin/env python3
"""
Command-line interface for multi-store price matching.

Examples:
  # Search every store for a term
  python -m src.cli search "milk"

  # Save two store products as matches for "milk"
  python -m src.cli save "milk" --match Kaufland:1 --match Profi:9

  # Cheapest current offer for a saved product
  python -m src.cli cheapest "milk" --json
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from src.config import load_settings
from src.errors import ConfigurationError
from src.models import AttributedProduct, ProductMatch
from src.providers.registry import ProviderRegistry
from src.results import ApiResult
from src.service import PriceMatchService
from src.utils.log import configure_logging


def parse_match(value: str, registry: ProviderRegistry) -> ProductMatch:
    """
    Parse a --match argument of the form PROVIDER:ID[:URL].

    URL defaults to the provider's configured endpoint.

    Raises:
        argparse.ArgumentTypeError: Malformed value or unknown provider without URL
    """
    parts = value.split(':', 2)
    if len(parts) < 2 or not parts[0].strip():
        raise argparse.ArgumentTypeError(f"expected PROVIDER:ID[:URL], got '{value}'")

    provider_name = parts[0].strip()
    try:
        product_id = int(parts[1])
    except ValueError:
        raise argparse.ArgumentTypeError(f"product id must be an integer, got '{parts[1]}'")

    if len(parts) == 3 and parts[2].strip():
        url = parts[2].strip()
    else:
        provider = registry.get_by_name(provider_name)
        if provider is None:
            raise argparse.ArgumentTypeError(
                f"unknown provider '{provider_name}' (configured: {', '.join(registry.get_names())}); pass a URL"
            )
        provider_name = provider.name
        url = provider.endpoint

    return ProductMatch(provider_product_id=product_id, product_url=url, provider_name=provider_name)


def print_products(products: List[AttributedProduct]) -> None:
    for product in products:
        print(f"  ├─ {product.price:>8} {product.provider_name:<12} #{product.provider_product_id} {product.name}")


def print_result(result: ApiResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    marker = '✓' if result.success else '✗'
    print(f"{marker} {result.message}")

    if isinstance(result.data, list) and result.data and isinstance(result.data[0], AttributedProduct):
        print_products(result.data)
    elif isinstance(result.data, AttributedProduct):
        print_products([result.data])
    elif isinstance(result.data, list):
        for match in result.data:
            print(f"  ├─ {match.provider_name:<12} #{match.provider_product_id} {match.product_url}")

    for diagnostic in result.diagnostics:
        print(f"  ⚠ {diagnostic['provider']}: {diagnostic['kind']} - {diagnostic['message']}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Multi-store price search and cheapest-price lookup',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split('Examples:', 1)[1] if __doc__ else None,
    )
    parser.add_argument('--config', '-c', help='Provider JSON file (default: config/providers.json)')
    parser.add_argument('--log-level', help='Logging level (default: $LOG_LEVEL or INFO)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    search = subparsers.add_parser('search', help='Search all stores for a term')
    search.add_argument('term', help='Search term')
    search.add_argument('--json', action='store_true', help='Print the JSON envelope')

    save = subparsers.add_parser('save', help='Save store matches for a product name')
    save.add_argument('name', help='Canonical product name')
    save.add_argument('--match', '-m', action='append', required=True, metavar='PROVIDER:ID[:URL]',
                      help='Store product to match (repeatable)')
    save.add_argument('--json', action='store_true', help='Print the JSON envelope')

    matches = subparsers.add_parser('matches', help='List saved matches for a product name')
    matches.add_argument('name', help='Canonical product name')
    matches.add_argument('--json', action='store_true', help='Print the JSON envelope')

    cheapest = subparsers.add_parser('cheapest', help='Cheapest current offer for a saved product')
    cheapest.add_argument('name', help='Canonical product name')
    cheapest.add_argument('--json', action='store_true', help='Print the JSON envelope')

    subparsers.add_parser('providers', help='List configured providers')

    return parser


async def run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    settings = load_settings(args.config)

    if args.command == 'providers':
        for provider in settings.registry:
            print(f"  ├─ {provider.name:<12} {provider.endpoint}")
        return 0

    if args.command == 'save':
        try:
            matches = [parse_match(value, settings.registry) for value in args.match]
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))

    service = await PriceMatchService.from_settings(settings, with_store=args.command != 'search')

    if args.command == 'search':
        result = await service.search_all_providers(args.term)
    elif args.command == 'save':
        result = await service.save_matches(args.name, matches)
    elif args.command == 'matches':
        result = await service.load_matches(args.name)
    else:
        result = await service.cheapest_price(args.name)

    print_result(result, args.json)
    return 0 if result.success else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        return asyncio.run(run(args, parser))
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
