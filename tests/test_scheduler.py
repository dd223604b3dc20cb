import asyncio
from datetime import timedelta

from helpers import FakeAdapter, FakeClock, make_offer
from usdt_p2p.engine.cache import SnapshotCache
from usdt_p2p.engine.scheduler import RefreshScheduler
from usdt_p2p.market.models import Direction
from usdt_p2p.sources.base import FetchFailure


def _scheduler(*adapters, interval=timedelta(minutes=10)):
    cache = SnapshotCache(clock=FakeClock())
    return RefreshScheduler(cache, adapters, interval=interval), cache


async def test_cycle_writes_every_slot():
    binance = FakeAdapter("binance", {
        Direction.BUY: [make_offer("b1"), make_offer("b2")],
        Direction.SELL: [make_offer("b3", direction=Direction.SELL)],
    })
    okx = FakeAdapter("okx", {Direction.BUY: [make_offer("o1", source="okx")]})
    scheduler, cache = _scheduler(binance, okx)

    outcome = await scheduler.refresh_cycle()

    assert set(outcome) == {
        ("binance", Direction.BUY), ("binance", Direction.SELL),
        ("okx", Direction.BUY), ("okx", Direction.SELL),
    }
    assert all(err is None for err in outcome.values())
    assert len(cache.get("binance", Direction.BUY).offers) == 2
    assert len(cache.get("binance", Direction.SELL).offers) == 1
    assert cache.get("okx", Direction.SELL).captured_at is not None
    assert scheduler.ready


async def test_partial_failure_is_isolated():
    binance = FakeAdapter("binance", {
        Direction.BUY: [make_offer("b1")],
        Direction.SELL: [make_offer("b2", direction=Direction.SELL)],
    })
    okx = FakeAdapter("okx", {Direction.BUY: [make_offer("o1", source="okx")]})
    scheduler, cache = _scheduler(binance, okx)
    await scheduler.refresh_cycle()
    good_sell = cache.get("binance", Direction.SELL)
    good_okx = cache.get("okx", Direction.BUY)

    binance.responses[Direction.BUY] = FetchFailure("binance", "HTTP 503")
    okx.responses[Direction.BUY] = RuntimeError("parser bug")
    outcome = await scheduler.refresh_cycle()

    assert outcome[("binance", Direction.BUY)] == "HTTP 503"
    assert "parser bug" in outcome[("okx", Direction.BUY)]
    assert outcome[("binance", Direction.SELL)] is None
    assert cache.get("binance", Direction.SELL).offers == good_sell.offers

    failed = cache.get("binance", Direction.BUY)
    assert failed.last_error == "HTTP 503"
    assert [o.id for o in failed.offers] == ["binance:b1"]

    okx_slot = cache.get("okx", Direction.BUY)
    assert okx_slot.offers == good_okx.offers
    assert okx_slot.captured_at == good_okx.captured_at
    assert "RuntimeError" in okx_slot.last_error


async def test_slow_source_does_not_block_others():
    slow = FakeAdapter("slow", {Direction.BUY: [make_offer("s", source="slow")]})
    slow.gate = asyncio.Event()
    fast = FakeAdapter("fast", {Direction.BUY: [make_offer("f", source="fast")]})
    scheduler, cache = _scheduler(slow, fast)
    scheduler.directions = [Direction.BUY]

    cycle = asyncio.create_task(scheduler.refresh_cycle())
    for _ in range(10):
        await asyncio.sleep(0)

    assert cache.get("fast", Direction.BUY).captured_at is not None
    assert cache.get("slow", Direction.BUY).captured_at is None
    assert not cycle.done()

    slow.gate.set()
    await cycle
    assert cache.get("slow", Direction.BUY).captured_at is not None


async def test_no_adapters_is_not_fatal():
    scheduler, cache = _scheduler()
    assert await scheduler.refresh_cycle() == {}
    assert cache.slots() == []


async def test_start_runs_first_cycle_then_periodic():
    adapter = FakeAdapter("binance", {Direction.BUY: [make_offer()]})
    scheduler, cache = _scheduler(adapter, interval=timedelta(seconds=0.01))

    await scheduler.start()
    assert scheduler.ready
    assert scheduler.cycles == 1
    assert cache.get("binance", Direction.BUY).captured_at is not None

    await asyncio.sleep(0.05)
    await scheduler.stop()
    assert scheduler.cycles >= 2


async def test_overlapping_triggers_keep_cache_consistent():
    adapter = FakeAdapter("binance", {Direction.BUY: [make_offer("a"), make_offer("b")]})
    scheduler, cache = _scheduler(adapter)

    tasks = [scheduler.trigger_refresh() for _ in range(3)]
    await asyncio.gather(*tasks)

    assert scheduler.cycles == 3
    assert len(adapter.calls) == 6
    assert [o.id for o in cache.get("binance", Direction.BUY).offers] == ["binance:a", "binance:b"]
    await scheduler.stop()


async def test_periodic_cycles_run_at_fixed_rate_despite_slow_fetch():
    adapter = FakeAdapter("binance", {Direction.BUY: [make_offer()]})
    adapter.delay = 0.15
    scheduler, _ = _scheduler(adapter, interval=timedelta(seconds=0.2))
    scheduler.directions = [Direction.BUY]

    await scheduler.start()
    await asyncio.sleep(2.0)
    await scheduler.stop()

    # cycles start every 0.2s regardless of the 0.15s fetch: ~10 in 2s
    assert scheduler.cycles >= 9
