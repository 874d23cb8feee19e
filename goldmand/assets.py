import asyncio
import glob
import json
import logging
import os
import tempfile
import time

from goldmand.chain import create_session
from goldmand.failover import DEFAULT_TIMEOUT, fetch_with_failover

logger = logging.getLogger("goldmand")

CACHE_DIR = os.path.join(tempfile.gettempdir(), "goldmand")


class AssetCache:
    """
    One JSON file per asset. Asset metadata is immutable once minted, so by
    default entries never expire; ``ttl`` (seconds) and ``purge()`` exist for
    the day that stops being true.
    """

    def __init__(self, directory=CACHE_DIR, ttl=0):
        self.directory = directory
        self.ttl = ttl

    def path(self, asset_id):
        return os.path.join(self.directory, f"asset_{asset_id}.json")

    def get(self, asset_id):
        path = self.path(asset_id)
        if not os.path.exists(path):
            return None
        try:
            if self.ttl and time.time() - os.path.getmtime(path) > self.ttl:
                return None
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.debug(f"Ignoring unreadable cache entry {path}: {e}")
            return None

    def put(self, asset_id, asset):
        """Best effort, a failed write only costs a network call next time"""
        path = self.path(asset_id)
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(json.dumps(asset))
        except OSError as e:
            logger.debug(f"Could not cache asset {asset_id}: {e}")

    def purge(self):
        removed = 0
        for path in glob.glob(os.path.join(self.directory, "asset_*.json")):
            os.remove(path)
            removed += 1
        return removed


class AssetReader:
    """AtomicAssets lookups, cache first then every mirror in turn."""

    def __init__(self, pool, cache=None, session=None, timeout=DEFAULT_TIMEOUT):
        self.pool = pool
        self.cache = cache if cache is not None else AssetCache()
        self.session = session or create_session()
        self.timeout = timeout

    def _get(self, endpoint, asset_id):
        response = self.session.get(f"{endpoint}/atomicassets/v1/assets/{asset_id}", timeout=self.timeout)
        response.raise_for_status()
        return response.json().get("data") or None

    async def fetch_asset(self, asset_id):
        cached = self.cache.get(asset_id)
        if cached is not None:
            return cached

        async def attempt(endpoint):
            return await asyncio.to_thread(self._get, endpoint, asset_id)

        asset = await fetch_with_failover(
            attempt, self.pool.iterate("atomic"), timeout=self.timeout, empty=None,
            label=f"asset {asset_id}",
        )
        if asset is not None:
            self.cache.put(asset_id, asset)
        return asset

    async def fetch_assets(self, asset_ids):
        """Resolves non-empty ids one after the other, keeps None for failed lookups"""
        assets = []
        for asset_id in asset_ids:
            if asset_id:
                assets.append(await self.fetch_asset(asset_id))
        return assets
