import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from goldmand.endpoints import ATOMIC_ENDPOINTS, WAX_ENDPOINTS
from goldmand.errors import InvalidKeyError
from goldmand.keys import decode_private_key
from goldmand.log import error, warning

logger = logging.getLogger("goldmand")

# ======================== Configuration ========================
CONFIG = {
    "ENV_FILE": ".env",
    "CHECK_INTERVAL": 15,  # minutes
    "DELAY_MIN": 4,  # seconds, random wait before mining
    "DELAY_MAX": 10,
    "RPC_TIMEOUT": 5,  # seconds
    "SCHEDULE_MODE": "serial",  # serial | overlap
    "ASSET_CACHE_TTL": 0,  # hours, 0 = never expire
    "LOG_LEVEL": "INFO",
}

SCHEDULE_MODES = ("serial", "overlap")


@dataclass
class Account:
    name: str
    private_key: str = field(repr=False)


@dataclass
class Settings:
    dry_run: bool = False
    check_interval: float = CONFIG["CHECK_INTERVAL"]
    delay_min: float = CONFIG["DELAY_MIN"]
    delay_max: float = CONFIG["DELAY_MAX"]
    rpc_timeout: float = CONFIG["RPC_TIMEOUT"]
    schedule_mode: str = CONFIG["SCHEDULE_MODE"]
    asset_cache_ttl: float = CONFIG["ASSET_CACHE_TTL"]
    log_level: str = CONFIG["LOG_LEVEL"]
    wax_endpoints: list = field(default_factory=lambda: list(WAX_ENDPOINTS))
    atomic_endpoints: list = field(default_factory=lambda: list(ATOMIC_ENDPOINTS))


def load_env(path=None):
    load_dotenv(path or CONFIG["ENV_FILE"])


def env_number(environ, key, default, cast=float):
    """Unset, unparsable and zero values all fall back to the default"""
    try:
        value = cast(environ.get(key, ""))
    except (TypeError, ValueError):
        return default
    return value or default


def env_list(environ, key, default):
    raw = environ.get(key)
    if not raw:
        return list(default)
    return [url.strip() for url in raw.split(",") if url.strip()]


def load_settings(environ=None):
    environ = os.environ if environ is None else environ

    mode = environ.get("SCHEDULE_MODE", CONFIG["SCHEDULE_MODE"]).strip().lower()
    if mode not in SCHEDULE_MODES:
        warning(f"Unknown SCHEDULE_MODE {mode!r}, using {CONFIG['SCHEDULE_MODE']}")
        mode = CONFIG["SCHEDULE_MODE"]

    return Settings(
        dry_run=environ.get("DEV_MODE", "").strip() == "1",
        check_interval=env_number(environ, "CHECK_INTERVAL", CONFIG["CHECK_INTERVAL"], int),
        delay_min=env_number(environ, "DELAY_MIN", CONFIG["DELAY_MIN"]),
        delay_max=env_number(environ, "DELAY_MAX", CONFIG["DELAY_MAX"]),
        rpc_timeout=env_number(environ, "RPC_TIMEOUT", CONFIG["RPC_TIMEOUT"]),
        schedule_mode=mode,
        asset_cache_ttl=env_number(environ, "ASSET_CACHE_TTL", CONFIG["ASSET_CACHE_TTL"]),
        log_level=environ.get("LOG_LEVEL", CONFIG["LOG_LEVEL"]),
        wax_endpoints=env_list(environ, "WAX_ENDPOINTS", WAX_ENDPOINTS),
        atomic_endpoints=env_list(environ, "ATOMIC_ENDPOINTS", ATOMIC_ENDPOINTS),
    )


def _suffix_order(suffix):
    return (len(suffix), suffix)


def load_accounts(environ=None):
    """
    Collects ACCOUNT_NAME<id> / PRIVATE_KEY<id> pairs.

    An account without a key, or with a key that does not decode, is left out
    with an error line; the others still run.
    """
    environ = os.environ if environ is None else environ

    names = {
        key[len("ACCOUNT_NAME"):]: value.strip()
        for key, value in environ.items()
        if key.startswith("ACCOUNT_NAME") and value.strip()
    }

    accounts = []
    for suffix in sorted(names, key=_suffix_order):
        name = names[suffix]
        key = environ.get(f"PRIVATE_KEY{suffix}", "").strip()
        if not key:
            error(f"Account {name} does not have a PRIVATE_KEY{suffix} in .env")
            continue
        try:
            decode_private_key(key)
        except InvalidKeyError:
            error(f"PRIVATE_KEY{suffix} is not a valid EOS key")
            continue
        accounts.append(Account(name=name, private_key=key))

    return accounts
