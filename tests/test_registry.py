from __future__ import annotations

import threading

import numpy as np
import pytest

from voice_uploader.audio.registry import SpeakerRegistry


def _chunk(*values: int) -> np.ndarray:
    return np.array(values, dtype=np.int16)


@pytest.fixture()
def registry() -> SpeakerRegistry:
    return SpeakerRegistry(buffer_capacity=16, shards=4)


def test_append_without_entry_is_a_noop(registry: SpeakerRegistry) -> None:
    assert registry.append(5, _chunk(1, 2)) is False
    assert 5 not in registry
    assert len(registry) == 0


def test_buffer_is_concatenation_of_appends(registry: SpeakerRegistry) -> None:
    registry.insert(7, "alice")
    assert registry.append(7, _chunk(100, -100))
    assert registry.append(7, _chunk(50, -50))
    np.testing.assert_array_equal(registry.buffered_samples(7), [100, -100, 50, -50])


def test_remove_if_nonempty_returns_job_once(registry: SpeakerRegistry) -> None:
    registry.insert(7, "alice")
    registry.append(7, _chunk(1, 2, 3, 4))

    job = registry.remove_if_nonempty(7)
    assert job is not None
    assert job.ssrc == 7
    assert job.user_id == "alice"
    np.testing.assert_array_equal(job.samples, [1, 2, 3, 4])
    assert 7 not in registry
    assert registry.remove_if_nonempty(7) is None


def test_remove_if_nonempty_leaves_empty_entry(registry: SpeakerRegistry) -> None:
    registry.insert(3, "bob")
    assert registry.remove_if_nonempty(3) is None
    assert 3 in registry


def test_discard_if_empty(registry: SpeakerRegistry) -> None:
    registry.insert(3, "bob")
    registry.insert(4, "carol")
    registry.append(4, _chunk(1))

    assert registry.discard_if_empty(3) is True
    assert registry.discard_if_empty(4) is False
    assert registry.discard_if_empty(99) is False
    assert 3 not in registry
    assert 4 in registry


def test_insert_overwrites_stale_entry(registry: SpeakerRegistry) -> None:
    registry.insert(1, "alice")
    registry.append(1, _chunk(9, 9))
    registry.insert(1, "bob")

    assert len(registry.buffered_samples(1)) == 0
    registry.append(1, _chunk(1, 2))
    job = registry.remove_if_nonempty(1)
    assert job is not None
    assert job.user_id == "bob"
    np.testing.assert_array_equal(job.samples, [1, 2])


def test_reused_ssrc_starts_fresh_after_flush(registry: SpeakerRegistry) -> None:
    registry.insert(2, "alice")
    registry.append(2, _chunk(1, 2))
    first = registry.remove_if_nonempty(2)

    registry.insert(2, "dave")
    registry.append(2, _chunk(3, 4))
    second = registry.remove_if_nonempty(2)

    assert first is not None and second is not None
    np.testing.assert_array_equal(first.samples, [1, 2])
    np.testing.assert_array_equal(second.samples, [3, 4])
    assert second.user_id == "dave"


def test_job_samples_are_detached(registry: SpeakerRegistry) -> None:
    registry.insert(2, "alice")
    registry.append(2, _chunk(1, 2))
    job = registry.remove_if_nonempty(2)
    registry.insert(2, "alice")
    registry.append(2, _chunk(5, 6))
    assert job is not None
    np.testing.assert_array_equal(job.samples, [1, 2])


def test_remove_returns_empty_job(registry: SpeakerRegistry) -> None:
    registry.insert(8, "erin")
    job = registry.remove(8)
    assert job is not None
    assert job.sample_count == 0
    assert registry.remove(8) is None


def test_source_ids_for(registry: SpeakerRegistry) -> None:
    registry.insert(1, "alice")
    registry.insert(6, "alice")
    registry.insert(2, "bob")
    assert sorted(registry.source_ids_for("alice")) == [1, 6]
    assert registry.source_ids_for("nobody") == []


def test_rejects_zero_shards() -> None:
    with pytest.raises(ValueError):
        SpeakerRegistry(shards=0)


def test_concurrent_append_and_remove_lose_nothing() -> None:
    """Samples either end up in exactly one removed job or stay buffered; never lost or duplicated."""
    registry = SpeakerRegistry(buffer_capacity=0, shards=2)
    ssrc = 11
    registry.insert(ssrc, "alice")
    stop = threading.Event()
    appended: list[int] = []
    removed: list[np.ndarray] = []

    def appender(value: int) -> None:
        count = 0
        for _ in range(2000):
            if registry.append(ssrc, np.full(3, value, dtype=np.int16)):
                count += 3
        appended.append(count)

    def remover() -> None:
        while not stop.is_set():
            job = registry.remove_if_nonempty(ssrc)
            if job is not None:
                removed.append(job.samples)
                registry.insert(ssrc, "alice")

    threads = [threading.Thread(target=appender, args=(v,)) for v in (1, 2, 3)]
    remover_thread = threading.Thread(target=remover)
    remover_thread.start()
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    stop.set()
    remover_thread.join()

    leftover = registry.buffered_samples(ssrc)
    total_seen = sum(len(s) for s in removed) + (len(leftover) if leftover is not None else 0)
    assert total_seen == sum(appended)
