import argparse
import asyncio
import logging
import os
import sys

from goldmand.assets import AssetCache, AssetReader
from goldmand.chain import ChainReader, create_session
from goldmand.config import CONFIG, load_accounts, load_env, load_settings
from goldmand.endpoints import EndpointPool
from goldmand.errors import ConfigError
from goldmand.log import error, print_banner, setup_logging, success
from goldmand.runner import AccountRunner, Scheduler
from goldmand.transact import TransactionSubmitter

logger = logging.getLogger("goldmand")


def build_argparser():
    ap = argparse.ArgumentParser(prog="goldmand", description="Goldmand WAX auto mining bot")
    ap.add_argument("--env-file", default=None, help="dotenv file (default .env)")
    ap.add_argument("--once", action="store_true", help="run a single pass and exit")
    ap.add_argument("--dry-run", action="store_true", help="never broadcast transactions")
    ap.add_argument("--purge-cache", action="store_true", help="delete cached asset data first")
    return ap


def build_runner(settings, cache=None):
    pool = EndpointPool(settings.wax_endpoints, settings.atomic_endpoints)
    session = create_session()
    chain = ChainReader(pool, session=session, timeout=settings.rpc_timeout)
    assets = AssetReader(
        pool,
        cache=cache or AssetCache(ttl=settings.asset_cache_ttl * 3600),
        session=session,
        timeout=settings.rpc_timeout,
    )
    submitter = TransactionSubmitter(pool, chain, dry_run=settings.dry_run)
    return AccountRunner(
        pool, chain, assets, submitter,
        delay_min=settings.delay_min, delay_max=settings.delay_max,
    )


async def run(settings, accounts, once=False):
    runner = build_runner(settings)
    if once:
        await runner.run_accounts(accounts)
        return
    await Scheduler(runner, accounts, settings.check_interval, mode=settings.schedule_mode).run_forever()


def main(argv=None):
    args = build_argparser().parse_args(argv)
    load_env(args.env_file)
    setup_logging(os.environ.get("LOG_LEVEL", CONFIG["LOG_LEVEL"]))
    settings = load_settings()
    if args.dry_run:
        settings.dry_run = True

    logger.info("Goldmand Bot initialization")
    if args.purge_cache:
        removed = AssetCache().purge()
        success(f"Removed {removed} cached asset(s)")

    accounts = load_accounts()
    if not accounts:
        error("No valid ACCOUNT_NAME / PRIVATE_KEY pairs found in .env")
        return 1

    print_banner(accounts, settings.check_interval)
    if settings.dry_run:
        logger.info("DEV_MODE on, transactions will not be broadcast")

    try:
        asyncio.run(run(settings, accounts, once=args.once))
    except ConfigError as e:
        error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
