import asyncio
import pytest

from gas_oracle.adapters.mock import MockBlockSource, mock_block
from gas_oracle.core.errors import BlockSourceError, ReorgTooDeepError, WindowDesyncError
from gas_oracle.core.logger import TICKS, TICK_FAILURES, RESYNCS
from gas_oracle.core.oracle import GasOracle
from gas_oracle.core.poller import Poller, TickAction, action_for

def build_chain(source, prefix, start, count, parent_hash):
    blocks = []
    for number in range(start, start + count):
        block = mock_block(number, f"0x{prefix}{number}", parent_hash)
        source.add(block)
        blocks.append(block)
        parent_hash = block.hash
    return blocks

@pytest.fixture
def source():
    return MockBlockSource()

def make_poller(source, capacity=200, retention=256, **kwargs):
    oracle = GasOracle(source, window_capacity=capacity, retention_depth=retention)
    return Poller(oracle, source, **kwargs)

# --- Error policy ---

def test_error_policy_table():
    assert action_for(BlockSourceError("down")) is TickAction.SKIP
    assert action_for(ReorgTooDeepError("deep")) is TickAction.RESYNC
    assert action_for(ReorgTooDeepError("deep"), resync_on_deep_reorg=False) is TickAction.SKIP
    assert action_for(WindowDesyncError("broken")) is TickAction.FATAL
    assert action_for(RuntimeError("unexpected")) is TickAction.SKIP

@pytest.mark.parametrize("frequency", [0, 3601, -1])
def test_polling_frequency_must_be_in_range(source, frequency):
    with pytest.raises(ValueError):
        make_poller(source, polling_frequency=frequency)

# --- Bootstrap ---

@pytest.mark.asyncio
async def test_bootstrap_seeds_from_age_offset(source):
    build_chain(source, "a", 0, 101, "0x0")
    poller = make_poller(source, age_offset=50)

    assert await poller.bootstrap() is True

    assert source.calls == [("number", "latest"), ("number", 50)]
    assert poller.oracle.get_latest_block_number() == 50
    assert poller.oracle.get_number_of_blocks() == 1

@pytest.mark.asyncio
async def test_bootstrap_on_short_chain_starts_at_genesis(source):
    build_chain(source, "a", 0, 11, "0x0")
    poller = make_poller(source, age_offset=50)
    await poller.bootstrap()
    assert poller.oracle.get_latest_block_number() == 0

@pytest.mark.asyncio
async def test_bootstrap_failure_is_logged_not_raised(source):
    build_chain(source, "a", 0, 5, "0x0")
    poller = make_poller(source)
    source.set_next_call_to_fail(1)

    assert await poller.bootstrap() is False
    assert poller.oracle.get_number_of_blocks() == 0

# --- Ticks ---

@pytest.mark.asyncio
async def test_tick_after_bootstrap_fills_the_gap(source):
    build_chain(source, "a", 0, 101, "0x0")
    poller = make_poller(source, age_offset=50)
    await poller.bootstrap()

    assert await poller.tick() is True

    assert poller.oracle.get_latest_block_number() == 100
    assert poller.oracle.get_number_of_blocks() == 51

@pytest.mark.asyncio
async def test_transient_failure_skips_tick(source):
    build_chain(source, "a", 0, 3, "0x0")
    poller = make_poller(source, age_offset=0)
    await poller.bootstrap()
    failures_before = TICK_FAILURES.labels("BlockSourceError")._value.get()

    build_chain(source, "a", 3, 1, "0xa2")
    source.set_next_call_to_fail(1)
    assert await poller.tick() is False
    assert poller.oracle.get_latest_block_number() == 2
    assert TICK_FAILURES.labels("BlockSourceError")._value.get() == failures_before + 1

    # The schedule is unaffected: the next tick succeeds.
    assert await poller.tick() is True
    assert poller.oracle.get_latest_block_number() == 3

@pytest.mark.asyncio
async def test_tick_is_skipped_while_another_is_in_flight(source):
    build_chain(source, "a", 0, 3, "0x0")
    poller = make_poller(source, age_offset=0)
    source.gate = asyncio.Event()
    skipped_before = TICKS.labels("skipped_in_flight")._value.get()

    first = asyncio.create_task(poller.tick())
    await asyncio.sleep(0)
    assert await poller.tick() is False

    source.gate.set()
    assert await first is True
    assert TICKS.labels("skipped_in_flight")._value.get() == skipped_before + 1
    assert [call for call in source.calls if call == ("number", "latest")] == [("number", "latest")]

@pytest.mark.asyncio
async def test_deep_reorg_triggers_resync(source):
    main = build_chain(source, "a", 1, 5, "0x0")
    poller = make_poller(source, capacity=3, retention=3, age_offset=2)
    await poller.bootstrap()
    await poller.tick()
    assert poller.oracle.engine.retained_hashes() == [block.hash for block in main[2:]]
    resyncs_before = RESYNCS._value.get()

    fork = build_chain(source, "b", 3, 5, main[1].hash)
    assert await poller.tick() is False

    assert RESYNCS._value.get() == resyncs_before + 1
    # Re-bootstrapped from the new head minus the age offset.
    assert poller.oracle.engine.tip.hash == fork[2].hash
    assert poller.oracle.get_number_of_blocks() == 1

    assert await poller.tick() is True
    assert poller.oracle.engine.tip.hash == fork[-1].hash

@pytest.mark.asyncio
async def test_deep_reorg_without_resync_keeps_last_good_state(source):
    main = build_chain(source, "a", 1, 5, "0x0")
    poller = make_poller(source, capacity=3, retention=3, age_offset=2, resync_on_deep_reorg=False)
    await poller.bootstrap()
    await poller.tick()
    before = poller.oracle.window.snapshot()

    build_chain(source, "b", 3, 5, main[1].hash)
    assert await poller.tick() is False

    assert poller.oracle.engine.tip.hash == main[-1].hash
    assert poller.oracle.window.snapshot() == before

@pytest.mark.asyncio
async def test_desync_is_fatal_for_a_tick(source):
    poller = make_poller(source, age_offset=0)
    a = build_chain(source, "a", 1, 3, "0x0")
    for block in a:
        await poller.oracle.reconcile(block)
    poller.oracle.window.apply_add(mock_block(9, "0xf9", "0xf8"))
    source.add(mock_block(3, "0xd3", a[1].hash))

    with pytest.raises(WindowDesyncError):
        await poller.tick()

@pytest.mark.asyncio
async def test_desync_stops_the_run_loop(source):
    poller = make_poller(source, age_offset=0)
    a = build_chain(source, "a", 1, 3, "0x0")
    for block in a:
        await poller.oracle.reconcile(block)
    poller.oracle.window.apply_add(mock_block(9, "0xf9", "0xf8"))
    source.add(mock_block(3, "0xd3", a[1].hash))
    source.set_next_call_to_fail(1)  # bootstrap fails transiently, the first scheduled tick hits the desync

    with pytest.raises(WindowDesyncError):
        await asyncio.wait_for(poller.run_loop(), timeout=5)

@pytest.mark.asyncio
async def test_run_loop_stops_on_request(source):
    build_chain(source, "a", 0, 3, "0x0")
    poller = make_poller(source, polling_frequency=3600, age_offset=0)

    task = asyncio.create_task(poller.run_loop())
    await asyncio.sleep(0.05)
    poller.stop()
    await asyncio.wait_for(task, timeout=1)

    assert poller.oracle.get_latest_block_number() == 2
