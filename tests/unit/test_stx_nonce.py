"""Unit tests for per-address nonce sequencing."""

import sys
import threading
import time
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

from stx_nonce import NonceSequencer  # noqa: E402


ADDRESS = "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"


def test_hint_is_returned_unchanged():
    sequencer = NonceSequencer(lambda address: 5)
    assert sequencer.next_nonce(ADDRESS) == 5


def test_stuck_hint_is_trusted_every_time():
    sequencer = NonceSequencer(lambda address: 5)
    used = []
    for _ in range(3):
        with sequencer.reserve(ADDRESS):
            used.append(sequencer.next_nonce(ADDRESS))
    assert used == [5, 5, 5]


def test_hint_going_backwards_is_followed():
    hints = iter([9, 4])
    sequencer = NonceSequencer(lambda address: next(hints))
    assert sequencer.next_nonce(ADDRESS) == 9
    assert sequencer.next_nonce(ADDRESS) == 4


def test_hint_fetched_for_requested_address():
    seen = []

    def fetch(address):
        seen.append(address)
        return 0

    sequencer = NonceSequencer(fetch)
    sequencer.next_nonce("ST2CY5V39NHDPWSXMW9QDT3HC3GD6Q6XX4CFRK9AG")
    assert seen == ["ST2CY5V39NHDPWSXMW9QDT3HC3GD6Q6XX4CFRK9AG"]


def test_overlapping_reservations_are_serialized():
    # the hint advances only once the previous holder has "broadcast"
    state = {"remote": 0}
    sequencer = NonceSequencer(lambda address: state["remote"])
    used = []

    def send():
        with sequencer.reserve(ADDRESS):
            nonce = sequencer.next_nonce(ADDRESS)
            time.sleep(0.01)
            used.append(nonce)
            state["remote"] = nonce + 1

    threads = [threading.Thread(target=send) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(used) == [0, 1, 2, 3]


def test_different_addresses_do_not_block_each_other():
    sequencer = NonceSequencer(lambda address: 0)
    with sequencer.reserve(ADDRESS):
        acquired = threading.Event()

        def other():
            with sequencer.reserve("ST2CY5V39NHDPWSXMW9QDT3HC3GD6Q6XX4CFRK9AG"):
                acquired.set()

        thread = threading.Thread(target=other)
        thread.start()
        thread.join(timeout=1)
        assert acquired.is_set()
