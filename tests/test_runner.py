import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from goldmand.assets import AssetCache, AssetReader
from goldmand.config import Account
from goldmand.runner import AccountRunner, Outcome, Scheduler, make_mine_action
from tests.conftest import FixedOrder, WIF, write_asset

ACCOUNT = Account(name="abcde.wam", private_key=WIF)


def make_runner(pool, tmp_path, miner, now, tx_id="ab" * 32, tools=((5001, 300),)):
    cache = AssetCache(directory=str(tmp_path))
    write_asset(cache, 1099, 500)
    for asset_id, delay in tools:
        write_asset(cache, asset_id, delay)
    session = MagicMock()
    session.get.side_effect = AssertionError("network must not be used")

    chain = MagicMock()
    chain.fetch_account = AsyncMock(return_value=miner)
    submitter = MagicMock(dry_run=False)
    submitter.submit = AsyncMock(return_value=tx_id)
    sleep = AsyncMock()

    clock = now if callable(now) else (lambda: now)
    runner = AccountRunner(
        pool, chain, AssetReader(pool, cache=cache, session=session), submitter,
        delay_min=4, delay_max=10, clock=clock, sleep=sleep, rng=FixedOrder(),
    )
    return runner, chain, submitter, sleep


def miner_row(last_mine=1000, inventory=(None, "5001", None)):
    return {"miner": "abcde.wam", "land": "1099", "inventory": list(inventory), "last_mine": last_mine}


def test_mine_action():
    assert make_mine_action("abcde.wam") == {
        "account": "goldmandgame",
        "name": "mine",
        "authorization": [{"actor": "abcde.wam", "permission": "active"}],
        "data": {"miner": "abcde.wam"},
    }


@pytest.mark.asyncio
async def test_mines_when_cooldown_is_over(pool, tmp_path):
    # 1000 + 500 (land) + 300 (tool 5001) = 1800
    runner, chain, submitter, sleep = make_runner(pool, tmp_path, miner_row(), now=1800)

    assert await runner.mine(ACCOUNT) is Outcome.MINED
    chain.fetch_account.assert_awaited_once_with("abcde.wam")
    sleep.assert_awaited_once_with(4)
    submitter.submit.assert_awaited_once_with("abcde.wam", [WIF], [make_mine_action("abcde.wam")])


@pytest.mark.asyncio
async def test_reports_cooldown(pool, tmp_path, caplog):
    runner, _, submitter, sleep = make_runner(pool, tmp_path, miner_row(), now=1799)

    assert await runner.mine(ACCOUNT) is Outcome.COOLDOWN
    assert "Mining still in cooldown" in caplog.text
    assert "01 seconds" in caplog.text
    sleep.assert_not_awaited()
    submitter.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_tool_delays_add_up(pool, tmp_path):
    tools = ((7001, 100), (7002, 200))
    miner = miner_row(inventory=("7001", None, "7002"))
    runner, _, submitter, _ = make_runner(pool, tmp_path, miner, now=1799, tools=tools)
    assert await runner.mine(ACCOUNT) is Outcome.COOLDOWN

    runner, _, submitter, _ = make_runner(pool, tmp_path, miner, now=1800, tools=tools)
    assert await runner.mine(ACCOUNT) is Outcome.MINED


@pytest.mark.asyncio
async def test_account_not_found(pool, tmp_path, caplog):
    runner, _, submitter, _ = make_runner(pool, tmp_path, None, now=1800)

    assert await runner.mine(ACCOUNT) is Outcome.NOT_FOUND
    assert "abcde.wam not found" in caplog.text
    submitter.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_asset_data_skips_account(pool, tmp_path):
    miner = miner_row(inventory=("9999",))
    runner, _, submitter, _ = make_runner(pool, tmp_path, miner, now=10_000)
    runner.assets.session.get.side_effect = ConnectionError("refused")

    assert await runner.mine(ACCOUNT) is Outcome.NO_ASSETS
    submitter.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_submission(pool, tmp_path):
    runner, _, _, _ = make_runner(pool, tmp_path, miner_row(), now=1800, tx_id=None)
    assert await runner.mine(ACCOUNT) is Outcome.FAILED


@pytest.mark.asyncio
async def test_remaining_time_uses_the_same_clock_read(pool, tmp_path, caplog):
    reads = iter([1790, 1800.5])
    runner, _, submitter, _ = make_runner(pool, tmp_path, miner_row(), now=lambda: next(reads))

    assert await runner.mine(ACCOUNT) is Outcome.COOLDOWN
    assert "10 seconds" in caplog.text
    submitter.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_dry_run_is_not_reported_as_failure(pool, tmp_path):
    runner, _, submitter, sleep = make_runner(pool, tmp_path, miner_row(), now=1800, tx_id=None)
    submitter.dry_run = True

    assert await runner.mine(ACCOUNT) is Outcome.DRY_RUN
    submitter.submit.assert_awaited_once()
    sleep.assert_awaited_once_with(4)


@pytest.mark.asyncio
async def test_endpoints_reshuffled_for_each_account(pool, tmp_path):
    runner, _, _, _ = make_runner(pool, tmp_path, miner_row(), now=0)
    pool.shuffle = MagicMock()
    other = Account(name="other.wam", private_key=WIF)

    await runner.run_accounts([ACCOUNT, other])
    assert pool.shuffle.call_count == 2


@pytest.mark.asyncio
async def test_one_broken_account_does_not_stop_the_others(pool, tmp_path):
    runner, chain, _, _ = make_runner(pool, tmp_path, miner_row(), now=1800)
    chain.fetch_account = AsyncMock(side_effect=[RuntimeError("boom"), miner_row()])
    other = Account(name="other.wam", private_key=WIF)

    results = await runner.run_accounts([ACCOUNT, other])
    assert results == {"abcde.wam": Outcome.FAILED, "other.wam": Outcome.MINED}


# ======================== Scheduler ========================
class StopLoop(Exception):
    pass


class CountingRunner:
    def __init__(self, release=None):
        self.active = 0
        self.max_active = 0
        self.passes = 0
        self.release = release

    async def run_accounts(self, accounts):
        self.active += 1
        self.passes += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.release is not None:
                await self.release.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self.active -= 1


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


def stopping_sleep(limit, record, clock=None):
    async def sleep(seconds):
        record.append(seconds)
        if clock is not None:
            clock.now += seconds
        await asyncio.sleep(0)
        if len(record) >= limit:
            raise StopLoop()

    return sleep


@pytest.mark.asyncio
async def test_serial_mode_never_overlaps():
    runner = CountingRunner()
    sleeps = []
    clock = FakeClock()
    scheduler = Scheduler(runner, [], interval=15, clock=clock, sleep=stopping_sleep(3, sleeps, clock))

    with pytest.raises(StopLoop):
        await scheduler.run_forever()
    assert runner.passes == 3
    assert runner.max_active == 1
    assert sleeps == [900, 900, 900]


@pytest.mark.asyncio
async def test_serial_mode_skips_missed_ticks(caplog):
    times = iter([0, 2000])
    sleeps = []
    scheduler = Scheduler(
        CountingRunner(), [], interval=15, clock=lambda: next(times), sleep=stopping_sleep(1, sleeps)
    )

    with pytest.raises(StopLoop):
        await scheduler.run_forever()
    # ticks at 900 and 1800 were missed, next one is 2700
    assert sleeps == [700]
    assert "skipping 2 run(s)" in caplog.text


@pytest.mark.asyncio
async def test_failing_pass_does_not_stop_the_loop():
    runner = MagicMock()
    runner.run_accounts = AsyncMock(side_effect=RuntimeError("boom"))
    sleeps = []
    scheduler = Scheduler(runner, [], interval=1, clock=lambda: 0, sleep=stopping_sleep(2, sleeps))

    with pytest.raises(StopLoop):
        await scheduler.run_forever()
    assert runner.run_accounts.await_count == 2


@pytest.mark.asyncio
async def test_overlap_mode_starts_passes_regardless():
    release = asyncio.Event()
    runner = CountingRunner(release)
    sleeps = []
    scheduler = Scheduler(runner, [], interval=15, mode="overlap", sleep=stopping_sleep(3, sleeps))

    with pytest.raises(StopLoop):
        await scheduler.run_forever()
    await asyncio.sleep(0)
    assert runner.passes == 3
    assert runner.max_active == 3
    release.set()
    await asyncio.gather(*scheduler._tasks)
