"""Print the config keys currently stored in a hash.

Usage:
    uv run python -m scripts.list_config_keys --hash-key billing [--scan-count 500]
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from config_cache.application.config_cache import ConfigCache
from config_cache.domain.exceptions import ConfigCacheException
from config_cache.infrastructure.key_store.redis_key_store import RedisKeyStore
from config_cache.shared.telemetry.logging import setup_logging


async def list_keys(hash_key: str, scan_count: int | None) -> list[str] | None:
    key_store = RedisKeyStore()
    cache = ConfigCache(key_store, hash_key=hash_key, label="list_config_keys", scan_count=scan_count)
    try:
        await key_store.connect()
        if not await cache.refresh():
            return None
        return sorted(cache.keys)
    finally:
        await key_store.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Print the config keys of a hash")
    parser.add_argument("--hash-key", required=True, help="Hash key (without prefix)")
    parser.add_argument("--scan-count", type=int, default=None, help="HSCAN COUNT hint")
    args = parser.parse_args()

    load_dotenv(override=True)
    setup_logging()
    try:
        keys = asyncio.run(list_keys(args.hash_key, args.scan_count))
    except ConfigCacheException as e:
        print(f"Listing failed: {e.message}", file=sys.stderr)
        return 1
    if keys is None:
        print("Key refresh did not complete (see log)", file=sys.stderr)
        return 1
    for key in keys:
        print(key)
    return 0


if __name__ == "__main__":
    sys.exit(main())
