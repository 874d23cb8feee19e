import random

from goldmand.errors import ConfigError

WAX_ENDPOINTS = [
    "https://api.waxsweden.org",
    "https://wax.cryptolions.io",
    "https://wax.eu.eosamsterdam.net",
    "https://api-wax.eosarabia.net",
    "https://wax.greymass.com",
    "https://wax.pink.gg",
]

ATOMIC_ENDPOINTS = [
    "https://aa.wax.blacklusion.io",
    "https://wax-atomic-api.eosphere.io",
    "https://wax.api.atomicassets.io",
    "https://wax.blokcrafters.io",
]


def validate_urls(urls):
    """Strip, drop anything that is not http(s) and trailing slashes"""
    valid = []
    for url in urls:
        url = url.strip().rstrip("/")
        if url.startswith("http"):
            valid.append(url)
    return valid


class EndpointPool:
    """Mirror lists for the chain RPC ("wax") and the AtomicAssets API ("atomic")."""

    def __init__(self, wax_endpoints=None, atomic_endpoints=None, rng=None):
        self.rng = rng or random.Random()
        self._base = {
            "wax": validate_urls(wax_endpoints or WAX_ENDPOINTS),
            "atomic": validate_urls(atomic_endpoints or ATOMIC_ENDPOINTS),
        }
        for kind, urls in self._base.items():
            if not urls:
                raise ConfigError(f"no valid {kind} endpoints configured")
        self._current = {kind: list(urls) for kind, urls in self._base.items()}
        self.shuffle()

    @property
    def wax(self):
        return list(self._current["wax"])

    @property
    def atomic(self):
        return list(self._current["atomic"])

    def shuffle(self):
        # shuffle endpoints to avoid spamming a single one
        for kind, urls in self._base.items():
            order = list(urls)
            self.rng.shuffle(order)
            self._current[kind] = order

    def sample(self):
        return self.rng.choice(self._current["wax"])

    def iterate(self, kind="wax"):
        if kind not in self._current:
            raise ValueError(f"unknown endpoint kind: {kind}")
        # snapshot, a reshuffle does not affect an ongoing failover
        yield from list(self._current[kind])
