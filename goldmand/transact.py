import logging

from hexbytes import HexBytes

from goldmand import keys
from goldmand.errors import ChainError
from goldmand.log import error, step, success
from goldmand.serializer import AbiSerializer, serialize_transaction, time_point_sec

logger = logging.getLogger("goldmand")

EXPIRE_SECONDS = 3600


def ref_block_prefix(head_block_id):
    """Bytes 8..12 of the block id read as a little endian uint32 (TAPOS)"""
    block_id = bytes(HexBytes(head_block_id))
    return int.from_bytes(block_id[8:12], "little")


def signing_digest(chain_id, packed_trx):
    # no context free data, its hash slot is 32 zero bytes
    return keys.sha256(bytes(HexBytes(chain_id)) + packed_trx + bytes(32))


def build_transaction(info, actions, expire_seconds=EXPIRE_SECONDS):
    """Transaction header bound to the head block described by ``get_info``"""
    return {
        "expiration": time_point_sec(info["head_block_time"]) + expire_seconds,
        "ref_block_num": info["head_block_num"] & 0xFFFF,
        "ref_block_prefix": ref_block_prefix(info["head_block_id"]),
        "max_net_usage_words": 0,
        "max_cpu_usage_ms": 0,
        "delay_sec": 0,
        "context_free_actions": [],
        "actions": actions,
    }


class TransactionSubmitter:
    """
    Builds, signs and broadcasts one transaction on a randomly picked endpoint.

    There is no failover on purpose: a rejected or lost transaction is reported
    and the next scheduled pass tries again. ``dry_run`` turns ``submit`` into
    a no-op.
    """

    def __init__(self, pool, chain, dry_run=False, expire_seconds=EXPIRE_SECONDS):
        self.pool = pool
        self.chain = chain
        self.dry_run = dry_run
        self.expire_seconds = expire_seconds
        self._abis = {}

    async def get_serializer(self, endpoint, contract):
        if contract not in self._abis:
            self._abis[contract] = AbiSerializer(await self.chain.get_abi(endpoint, contract))
        return self._abis[contract]

    async def serialize_actions(self, endpoint, actions):
        serialized = []
        for action in actions:
            serializer = await self.get_serializer(endpoint, action["account"])
            serialized.append({
                "account": action["account"],
                "name": action["name"],
                "authorization": action["authorization"],
                "data": serializer.serialize_action_data(action["name"], action["data"]),
            })
        return serialized

    async def submit(self, account, private_keys, actions):
        """Returns the transaction id, or None on dry run and on any failure"""
        if self.dry_run:
            return None

        try:
            endpoint = self.pool.sample()
            info = await self.chain.get_info(endpoint)

            trx = build_transaction(
                info, await self.serialize_actions(endpoint, actions), self.expire_seconds
            )
            packed_trx = serialize_transaction(trx)
            digest = signing_digest(info["chain_id"], packed_trx)
            signatures = [keys.sign_digest(key, digest) for key in private_keys]

            step(f"Broadcasting transaction for {account} on {endpoint}")
            result = await self.chain.push_transaction(endpoint, signatures, packed_trx.hex())
            if not result or "transaction_id" not in result:
                raise ChainError("node did not return a transaction id")

            success(result["transaction_id"])
            return result["transaction_id"]
        except Exception as e:
            error(str(e))
            return None
