import json
from unittest.mock import MagicMock

import pytest

from goldmand.endpoints import EndpointPool

WIF = "5KQwrPbwdL6PhXujxW37FSSQZ1JiwsST4cqQzDeyXtP79zkvFD3"
PUBLIC_KEY = "EOS6MRyAjQq8ud7hVNYcfnVPJqcVpscN5So8BhtHuGYqET5GDW5CV"
WAX_CHAIN_ID = "1064487b3cd1a897ce03ae5b6a865651747e2e152090f99c1d19d44e01aea5a4"


class FixedOrder:
    """rng that keeps lists in place and always picks the first item"""

    def shuffle(self, items):
        pass

    def choice(self, items):
        return items[0]

    def uniform(self, a, b):
        return a


def make_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = Exception(f"HTTP {status_code}")
    return response


@pytest.fixture
def pool():
    return EndpointPool(
        ["https://wax-a", "https://wax-b", "https://wax-c"],
        ["https://aa-a", "https://aa-b"],
        rng=FixedOrder(),
    )


@pytest.fixture
def mine_abi():
    return {
        "version": "eosio::abi/1.1",
        "types": [],
        "structs": [{"name": "mine", "base": "", "fields": [{"name": "miner", "type": "name"}]}],
        "actions": [{"name": "mine", "type": "mine", "ricardian_contract": ""}],
    }


def write_asset(cache, asset_id, delay):
    asset = {"asset_id": str(asset_id), "data": {"delay": delay, "name": f"asset {asset_id}"}}
    cache.put(str(asset_id), asset)
    return json.loads(json.dumps(asset))
