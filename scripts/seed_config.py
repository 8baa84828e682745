"""Seed a configuration hash from a JSON fixture file.

The file must hold a JSON object mapping config key -> record object. Each
record is written with a fresh lastUpdated stamp.

Usage:
    uv run python -m scripts.seed_config path/to/fixtures.json --hash-key billing

Requires: REDIS_HOST / REDIS_PORT / REDIS_DB (or .env); defaults to localhost.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from config_cache.application.config_cache import ConfigCache
from config_cache.domain.exceptions import ConfigCacheException
from config_cache.infrastructure.key_store.redis_key_store import RedisKeyStore
from config_cache.shared.telemetry.logging import setup_logging


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _load_env() -> None:
    """Load .env from project root so get_settings() sees REDIS_* when run as script."""
    load_dotenv(_project_root() / ".env", override=True)


def _read_fixtures(path: Path) -> dict[str, dict]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object of key -> record")
    return data


async def seed(path: Path, hash_key: str, label: str) -> int:
    fixtures = _read_fixtures(path)
    key_store = RedisKeyStore()
    cache = ConfigCache(
        key_store,
        hash_key=hash_key,
        label=label,
        fixture_data=fixtures,
        use_blocking_refresh=True,
    )
    try:
        # raises ConnectionFaultException when Redis is unreachable
        await key_store.connect()
        async with cache:
            return len(cache.keys)
    finally:
        await key_store.close()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("path", type=Path, help="JSON fixture file")
    parser.add_argument("--hash-key", required=True, help="Hash key (without prefix)")
    parser.add_argument("--label", default="seed_config", help="Label used in log lines")
    args = parser.parse_args()

    _load_env()
    setup_logging()
    try:
        total = asyncio.run(seed(args.path, args.hash_key, args.label))
    except (OSError, ValueError, ConfigCacheException) as e:
        print(f"Seeding failed: {e}", file=sys.stderr)
        return 1
    print(f"Hash now holds {total} config keys")
    return 0


if __name__ == "__main__":
    sys.exit(main())
