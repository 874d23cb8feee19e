import asyncio
import logging

import requests

from goldmand import __version__
from goldmand.errors import ChainError
from goldmand.failover import DEFAULT_TIMEOUT, fetch_with_failover

logger = logging.getLogger("goldmand")

GAME_CONTRACT = "goldmandgame"
MINERS_TABLE = "miners"


def create_session():
    """requests session shared by the chain and asset readers"""
    session = requests.Session()
    session.headers.update({
        "User-Agent": f"goldmand/{__version__}",
        "accept": "application/json, text/plain, */*",
        "Content-Type": "application/json",
    })
    return session


def error_message(payload, default="unknown error"):
    """Most specific message of a nodeos error answer"""
    if not isinstance(payload, dict):
        return default
    error = payload.get("error") or {}
    details = error.get("details") or []
    if details and details[0].get("message"):
        return details[0]["message"]
    return error.get("what") or payload.get("message") or default


class ChainReader:
    """JSON RPC client for the WAX chain API."""

    def __init__(self, pool, session=None, timeout=DEFAULT_TIMEOUT):
        self.pool = pool
        self.session = session or create_session()
        self.timeout = timeout

    # ======================== Single endpoint calls ========================
    def _post(self, endpoint, path, body):
        response = self.session.post(f"{endpoint}{path}", json=body, timeout=self.timeout)
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if response.status_code >= 400 or (isinstance(payload, dict) and "error" in payload):
            raise ChainError(error_message(payload, f"HTTP {response.status_code}"), response.status_code)
        return payload

    async def call(self, endpoint, path, body=None):
        return await asyncio.to_thread(self._post, endpoint, path, body or {})

    async def get_info(self, endpoint):
        return await self.call(endpoint, "/v1/chain/get_info")

    async def get_abi(self, endpoint, account):
        payload = await self.call(endpoint, "/v1/chain/get_abi", {"account_name": account})
        if not payload or not payload.get("abi"):
            raise ChainError(f"no abi for {account}")
        return payload["abi"]

    async def get_table_rows(self, endpoint, code, table, scope, lower_bound=None, upper_bound=None,
                             index_position=1, key_type="i64", limit=100):
        body = {
            "json": True,
            "code": code,
            "scope": scope,
            "table": table,
            "lower_bound": lower_bound,
            "upper_bound": upper_bound,
            "index_position": index_position,
            "key_type": key_type,
            "limit": limit,
            "reverse": False,
            "show_payer": False,
        }
        return await self.call(endpoint, "/v1/chain/get_table_rows", body)

    async def push_transaction(self, endpoint, signatures, packed_trx):
        body = {
            "signatures": signatures,
            "compression": 0,
            "packed_context_free_data": "",
            "packed_trx": packed_trx,
        }
        return await self.call(endpoint, "/v1/chain/push_transaction", body)

    # ======================== Failover reads ========================
    async def fetch_table(self, contract, table, scope, bounds, index_position=1):
        async def attempt(endpoint):
            payload = await self.get_table_rows(
                endpoint, contract, table, scope,
                lower_bound=bounds, upper_bound=bounds, index_position=index_position,
            )
            return payload.get("rows") if payload else None

        return await fetch_with_failover(
            attempt, self.pool.iterate("wax"), timeout=self.timeout, empty=[],
            label=f"{contract}/{table}",
        )

    async def fetch_account(self, account):
        """Miner row of ``account`` or None when the account is not registered"""
        rows = await self.fetch_table(GAME_CONTRACT, MINERS_TABLE, GAME_CONTRACT, account, 1)
        return rows[0] if rows else None
