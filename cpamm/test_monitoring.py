"""
Prometheus metrics driven by committed pair events.
"""
import pytest

from cpamm.errors import InvariantViolation
from cpamm.monitoring import Monitor


@pytest.fixture
def monitor(chain):
    return Monitor(chain)


def sample(monitor, name, **labels):
    return monitor.registry.get_sample_value(name, labels)


def test_reserves_follow_sync(monitor, pair, alice, deposit):
    deposit(pair, alice, 5000, 8000)
    label = pair.address.hex()

    assert sample(monitor, 'amm_pair_reserve', pair=label, side='0') == 5000
    assert sample(monitor, 'amm_pair_reserve', pair=label, side='1') == 8000
    assert sample(monitor, 'amm_invariant_k', pair=label) == 5000 * 8000
    assert sample(monitor, 'amm_liquidity_events_total', pair=label, kind='mint') == 1


def test_swaps_counted_once_committed(monitor, pair, tokens, alice, deposit):
    deposit(pair, alice, 10000, 10000)
    label = pair.address.hex()
    tokens[0].transfer(alice, pair.address, 1000)

    with pytest.raises(InvariantViolation):
        pair.swap(alice, 0, 907, alice)
    assert sample(monitor, 'amm_swaps_total', pair=label) is None

    pair.swap(alice, 0, 906, alice)
    assert sample(monitor, 'amm_swaps_total', pair=label) == 1
    assert sample(monitor, 'amm_swap_input_amount_sum', pair=label) == 1000


def test_update_reads_pairs(monitor, pair, alice, deposit):
    deposit(pair, alice, 5000, 5000)
    monitor.update()

    assert sample(monitor, 'amm_pair_total_supply', pair=pair.address.hex()) == 5000
    assert sample(monitor, 'system_memory_percent') is not None


def test_exposition_server(chain):
    monitor = Monitor(chain, port=0, serve=True)
    try:
        assert monitor.server is not None
        assert monitor.thread.is_alive()
    finally:
        monitor.stop_server()
