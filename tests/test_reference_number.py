"""
Unit tests for reference number generation.

Covers day-scoped sequencing, rollover, persistence and concurrency.
"""

import json
import re
import threading
from datetime import date

import pytest

from core.exceptions import ReferenceExhaustedError
from modules.reference_number import (
    CounterState,
    InMemoryCounterStore,
    JsonFileCounterStore,
    ReferenceNumberGenerator,
)


REFERENCE_PATTERN = re.compile(r"^AFF-\d{8}-\d{4}$")


class FakeToday:
    """Settable local-date provider."""

    def __init__(self, value: date):
        self.value = value

    def __call__(self) -> date:
        return self.value


# Fixtures

@pytest.fixture
def today():
    return FakeToday(date(2026, 10, 19))


@pytest.fixture
def memory_store():
    return InMemoryCounterStore()


@pytest.fixture
def generator(memory_store, today):
    return ReferenceNumberGenerator(memory_store, prefix="AFF", today=today)


class TestSequencing:
    """Same-day sequencing."""

    def test_first_reference_of_the_day(self, generator):
        assert generator.generate() == "AFF-20261019-0001"

    def test_sequence_increments(self, generator):
        refs = [generator.generate() for _ in range(3)]
        assert refs == ["AFF-20261019-0001", "AFF-20261019-0002", "AFF-20261019-0003"]

    def test_format(self, generator):
        assert REFERENCE_PATTERN.match(generator.generate())

    def test_custom_prefix(self, memory_store, today):
        generator = ReferenceNumberGenerator(memory_store, prefix="KIOSK", today=today)
        assert generator.generate() == "KIOSK-20261019-0001"

    def test_last_four_digit_sequence(self, today):
        store = InMemoryCounterStore(CounterState(last_date="20261019", last_sequence=9998))
        generator = ReferenceNumberGenerator(store, today=today)
        assert generator.generate() == "AFF-20261019-9999"

    def test_exhausted_sequence_raises(self, today):
        store = InMemoryCounterStore(CounterState(last_date="20261019", last_sequence=9999))
        generator = ReferenceNumberGenerator(store, today=today)

        with pytest.raises(ReferenceExhaustedError):
            generator.generate()
        assert store.state == CounterState(last_date="20261019", last_sequence=9999)

    def test_exhausted_sequence_recovers_next_day(self, today):
        store = InMemoryCounterStore(CounterState(last_date="20261019", last_sequence=9999))
        generator = ReferenceNumberGenerator(store, today=today)
        today.value = date(2026, 10, 20)
        assert REFERENCE_PATTERN.match(generator.generate())

    def test_counter_saved_together(self, generator, memory_store):
        generator.generate()
        generator.generate()
        assert memory_store.state == CounterState(last_date="20261019", last_sequence=2)


class TestRollover:
    """Sequence restarts on a new date."""

    def test_new_day_restarts_at_one(self, generator, today):
        generator.generate()
        generator.generate()
        today.value = date(2026, 10, 20)
        assert generator.generate() == "AFF-20261020-0001"

    def test_stale_counter_from_earlier_day(self, today):
        store = InMemoryCounterStore(CounterState(last_date="20261001", last_sequence=42))
        generator = ReferenceNumberGenerator(store, today=today)
        assert generator.generate() == "AFF-20261019-0001"


class TestJsonFileCounterStore:
    """File-backed counter."""

    def test_missing_file_starts_fresh(self, tmp_path):
        store = JsonFileCounterStore(tmp_path / "counter.json")
        assert store.load() == CounterState()

    def test_persists_across_generators(self, tmp_path, today):
        path = tmp_path / "data" / "counter.json"
        ReferenceNumberGenerator(JsonFileCounterStore(path), today=today).generate()
        ReferenceNumberGenerator(JsonFileCounterStore(path), today=today).generate()

        third = ReferenceNumberGenerator(JsonFileCounterStore(path), today=today).generate()
        assert third == "AFF-20261019-0003"

    def test_file_contents(self, tmp_path, today):
        path = tmp_path / "counter.json"
        ReferenceNumberGenerator(JsonFileCounterStore(path), today=today).generate()

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {"lastDate": "20261019", "lastSequence": 1}

    def test_no_temp_files_left_behind(self, tmp_path, today):
        path = tmp_path / "counter.json"
        generator = ReferenceNumberGenerator(JsonFileCounterStore(path), today=today)
        for _ in range(5):
            generator.generate()
        assert [p.name for p in tmp_path.iterdir()] == ["counter.json"]

    def test_corrupt_file_starts_fresh(self, tmp_path):
        path = tmp_path / "counter.json"
        path.write_text("{not json", encoding="utf-8")
        assert JsonFileCounterStore(path).load() == CounterState()


class TestConcurrency:
    """Concurrent callers never receive the same number."""

    def test_unique_under_threads(self, generator):
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(25):
                ref = generator.generate()
                with lock:
                    results.append(ref)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 200
        assert len(set(results)) == 200
        sequences = sorted(int(ref.rsplit("-", 1)[1]) for ref in results)
        assert sequences == list(range(1, 201))
