"""
Configuration
Provider list and runtime settings, loaded once per process
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from src.errors import ConfigurationError
from src.providers.base import Provider
from src.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_PROVIDERS_CONFIG = 'config/providers.json'
DEFAULT_PROVIDER_TIMEOUT_SECONDS = 10.0
DEFAULT_STORE_MAX_CONNECTIONS = 20

# Glovo store endpoints used when no provider file is available
DEFAULT_PROVIDERS = [
    {'name': 'Kaufland', 'endpoint': 'http://api.glovoapp.com/v3/stores/52287/addresses/102892/'},
    {'name': 'Auchan', 'endpoint': 'http://api.glovoapp.com/v3/stores/272457/addresses/462348/'},
    {'name': 'Profi', 'endpoint': 'http://api.glovoapp.com/v3/stores/330531/addresses/524146/'},
    {'name': 'Carrefour', 'endpoint': 'http://api.glovoapp.com/v3/stores/316638/addresses/519071/'},
]


@dataclass(frozen=True)
class Settings:
    """Immutable process settings, injected into the service at startup."""

    registry: ProviderRegistry
    provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS
    store_max_connections: int = DEFAULT_STORE_MAX_CONNECTIONS
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    def require_supabase(self):
        """
        Get storage credentials.

        Returns:
            Tuple of (url, key)

        Raises:
            ConfigurationError: If either value is missing
        """
        if not self.supabase_url or not self.supabase_key:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set in environment")
        return self.supabase_url, self.supabase_key


def parse_providers(data: Dict) -> ProviderRegistry:
    """
    Build the registry from a decoded provider file.

    Args:
        data: {"providers": [{"name": ..., "endpoint": ...}, ...]}

    Returns:
        ProviderRegistry in file order

    Raises:
        ConfigurationError: Missing/blank fields, no providers, or duplicate names
    """
    entries = data.get('providers') if isinstance(data, dict) else None
    if not isinstance(entries, list) or not entries:
        raise ConfigurationError("Provider config must contain a non-empty 'providers' list")

    providers: List[Provider] = []
    for index, entry in enumerate(entries):
        name = entry.get('name') if isinstance(entry, dict) else None
        endpoint = entry.get('endpoint') if isinstance(entry, dict) else None
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Provider #{index + 1} has no name")
        if not isinstance(endpoint, str) or not endpoint.startswith(('http://', 'https://')):
            raise ConfigurationError(f"Provider '{name}' has no http(s) endpoint")
        providers.append(Provider(name=name.strip(), endpoint=endpoint.strip()))

    return ProviderRegistry(providers)


def load_providers(config_path: Optional[str] = None) -> ProviderRegistry:
    """
    Load providers from a JSON file, falling back to the built-in list.

    A missing or unparsable file only logs a warning. A file that parses but
    describes an invalid provider list is an error.

    Args:
        config_path: Path to provider JSON (relative paths resolve against
            the working directory, then the project root)

    Returns:
        ProviderRegistry
    """
    path = _resolve_path(config_path or DEFAULT_PROVIDERS_CONFIG)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning("Provider config '%s' not found, using defaults", path)
        return parse_providers({'providers': DEFAULT_PROVIDERS})
    except json.JSONDecodeError as e:
        logger.warning("Error parsing provider config '%s': %s, using defaults", path, e)
        return parse_providers({'providers': DEFAULT_PROVIDERS})

    return parse_providers(data)


def load_settings(config_path: Optional[str] = None, env_file: Optional[str] = None) -> Settings:
    """
    Load settings from .env, the environment and the provider file.

    Args:
        config_path: Provider file path (overrides PROVIDERS_CONFIG)
        env_file: .env path (default: project root .env, if it exists)

    Returns:
        Settings
    """
    env_path = Path(env_file) if env_file else PROJECT_ROOT / '.env'
    if env_path.exists():
        load_dotenv(env_path)

    registry = load_providers(config_path or os.getenv('PROVIDERS_CONFIG'))

    return Settings(
        registry=registry,
        provider_timeout=_env_number('PROVIDER_TIMEOUT_SECONDS', DEFAULT_PROVIDER_TIMEOUT_SECONDS, float),
        store_max_connections=_env_number('STORE_MAX_CONNECTIONS', DEFAULT_STORE_MAX_CONNECTIONS, int),
        supabase_url=os.getenv('SUPABASE_URL'),
        supabase_key=os.getenv('SUPABASE_KEY'),
    )


def _resolve_path(config_path: str) -> Path:
    path = Path(config_path)
    if path.is_absolute() or path.exists():
        return path
    return PROJECT_ROOT / path


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got '{raw}'")
    return value
