import asyncio
import enum
import logging
import math
import random
import time

from goldmand import cooldown
from goldmand.chain import GAME_CONTRACT
from goldmand.log import cyan, error, task, warning, yellow

logger = logging.getLogger("goldmand")


class Outcome(enum.Enum):
    NOT_FOUND = "not_found"
    NO_ASSETS = "no_assets"
    COOLDOWN = "cooldown"
    MINED = "mined"
    FAILED = "failed"
    DRY_RUN = "dry_run"


def make_mine_action(account):
    return {
        "account": GAME_CONTRACT,
        "name": "mine",
        "authorization": [{"actor": account, "permission": "active"}],
        "data": {"miner": account},
    }


class AccountRunner:
    """Checks the cooldown of each account and mines when it is over."""

    def __init__(self, pool, chain, assets, submitter, delay_min=4, delay_max=10,
                 clock=time.time, sleep=asyncio.sleep, rng=None):
        self.pool = pool
        self.chain = chain
        self.assets = assets
        self.submitter = submitter
        self.delay_min = delay_min
        self.delay_max = delay_max
        self.clock = clock
        self.sleep = sleep
        self.rng = rng or random.Random()

    async def mine(self, account):
        self.pool.shuffle()

        name = account.name
        task("Mining")
        logger.info(f"Fetching account {cyan(name)}")
        miner = await self.chain.fetch_account(name)
        if not miner:
            error(f"Error Account {name} not found")
            return Outcome.NOT_FOUND

        land = await self.assets.fetch_asset(miner["land"])
        tools = await self.assets.fetch_assets(miner.get("inventory") or [])
        if land is None or any(tool is None for tool in tools):
            error(f"Could not load land/tool data for {name}, skipping this round")
            return Outcome.NO_ASSETS

        now = self.clock()
        ready, available = cooldown.evaluate(
            now,
            miner["last_mine"],
            cooldown.asset_delay(land),
            [cooldown.asset_delay(tool) for tool in tools],
        )
        logger.debug(f"{name} next availability {available}")
        if not ready:
            left = cooldown.remaining_ms(now, available)
            warning(f"Mining still in cooldown {yellow(cooldown.format_remaining(left))}")
            return Outcome.COOLDOWN

        delay = round(self.rng.uniform(self.delay_min, self.delay_max), 2)
        logger.info(f"\tMining (after a {round(delay)}s delay)")
        await self.sleep(delay)

        tx_id = await self.submitter.submit(name, [account.private_key], [make_mine_action(name)])
        if self.submitter.dry_run:
            logger.info(f"DEV_MODE on, mine for {name} not broadcast")
            return Outcome.DRY_RUN
        return Outcome.MINED if tx_id else Outcome.FAILED

    async def run_accounts(self, accounts):
        results = {}
        for account in accounts:
            try:
                results[account.name] = await self.mine(account)
            except Exception as e:
                error(f"Unexpected error for {account.name}: {e}")
                results[account.name] = Outcome.FAILED
            print()  # just for clarity
        return results


class Scheduler:
    """
    Runs a pass over all accounts every ``interval`` minutes.

    ``serial`` (default) never starts a pass while the previous one is still
    running; ticks missed by a slow pass are skipped. ``overlap`` starts a new
    pass on every tick no matter what, like a plain setInterval.
    """

    def __init__(self, runner, accounts, interval, mode="serial",
                 clock=time.monotonic, sleep=asyncio.sleep):
        self.runner = runner
        self.accounts = accounts
        self.period = interval * 60
        self.mode = mode
        self.clock = clock
        self.sleep = sleep
        self._tasks = set()

    async def run_pass(self):
        try:
            return await self.runner.run_accounts(self.accounts)
        except Exception as e:
            error(f"Pass failed: {e}")
            return None

    async def run_forever(self):
        if self.mode == "overlap":
            await self._run_overlapping()
        else:
            await self._run_serial()

    async def _run_serial(self):
        started = self.clock()
        tick = 0
        while True:
            await self.run_pass()
            tick += 1
            now = self.clock()
            next_at = started + tick * self.period
            if now > next_at:
                missed = math.ceil((now - next_at) / self.period)
                warning(f"Pass took longer than the interval, skipping {missed} run(s)")
                tick += missed
                next_at = started + tick * self.period
            await self.sleep(next_at - now)

    async def _run_overlapping(self):
        while True:
            pass_task = asyncio.ensure_future(self.run_pass())
            self._tasks.add(pass_task)
            pass_task.add_done_callback(self._tasks.discard)
            await self.sleep(self.period)
