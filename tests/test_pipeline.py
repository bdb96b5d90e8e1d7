"""Property-based and unit tests for the generation pipeline.

Feature: unique-code-generator
"""

import itertools
import threading

import pytest
from hypothesis import given, strategies as st, settings

from uniqcodes.dedup import InMemoryDedupStore, build_key
from uniqcodes.errors import (
    InfeasibleRequest,
    NoProgressError,
    RandomSourceExhausted,
    WorkerFailure,
)
from uniqcodes.pipeline import (
    ATTEMPTS_PER_SLOT,
    GenerationPipeline,
    RoundState,
    _RoundQuota,
    generate,
)
from uniqcodes.sampler import DEFAULT_ALPHABET, UnbiasedSampler


class DuplicateFirstStore(InMemoryDedupStore):
    """Store that reports the first few probes as duplicates."""

    def __init__(self, duplicates: int):
        super().__init__()
        self._duplicates = duplicates
        self._lock = threading.Lock()
        self.probes = 0

    def check_and_insert(self, key: str) -> bool:
        with self._lock:
            self.probes += 1
            if self.probes <= self._duplicates:
                return False
        return super().check_and_insert(key)


class BrokenStore:
    """Store whose backend fails on every call."""

    def check_and_insert(self, key: str) -> bool:
        raise RuntimeError("cache backend unavailable")


class TestPipelineProperties:
    """Property-based tests for generated code sets."""

    @settings(max_examples=25, deadline=None)
    @given(
        size=st.integers(min_value=6, max_value=12),
        quantity=st.integers(min_value=0, max_value=300),
        prefix=st.text(alphabet="XYZ-", max_size=2),
    )
    def test_property_unique_exact_and_well_formed(self, size, quantity, prefix):
        """Codes are distinct, exactly quantity of them, sized and prefixed."""
        codes = generate(size, quantity, prefix)

        assert len(codes) == quantity
        assert len(set(codes)) == quantity
        for code in codes:
            assert len(code) == size
            assert code.startswith(prefix)
            assert set(code[len(prefix):]) <= set(DEFAULT_ALPHABET)


class TestRoundState:
    """Tests for round planning."""

    def test_plan_for_large_shortfall(self):
        state = RoundState.plan(1, 1000)

        assert state.chunk_size == 10
        assert state.workers == 100

    def test_plan_rounds_chunk_size_up(self):
        state = RoundState.plan(2, 250)

        assert state.chunk_size == 3
        assert state.workers == 84
        assert state.workers * state.chunk_size >= 250

    def test_plan_for_tiny_shortfall(self):
        state = RoundState.plan(3, 5)

        assert state.chunk_size == 1
        assert state.workers == 5

    def test_finish_returns_new_state(self):
        planned = RoundState.plan(1, 10)

        finished = planned.finish(accepted=7, duplicates=3)

        assert planned.accepted == 0
        assert finished.accepted == 7
        assert finished.duplicates == 3
        assert finished.made_progress
        assert not planned.finish(0, 10).made_progress


class TestGenerationPipeline:
    """Unit tests for pipeline behaviour."""

    def test_converges_on_requested_quantity(self):
        """1000 codes of size 6 are generated in a bounded number of rounds."""
        pipeline = GenerationPipeline()

        codes = pipeline.run(size=6, quantity=1000, prefix="")

        assert len(codes) == 1000
        assert len(set(codes)) == 1000
        assert all(len(code) == 6 for code in codes)
        assert 1 <= len(pipeline.rounds) <= 10

    def test_duplicates_are_redrawn_within_the_round(self):
        """A worker keeps drawing for its slot after a collision."""
        store = DuplicateFirstStore(duplicates=5)
        pipeline = GenerationPipeline(store=store)

        codes = pipeline.run(size=8, quantity=20)

        assert len(codes) == 20
        assert len(set(codes)) == 20
        assert [state.shortfall for state in pipeline.rounds] == [20]
        assert pipeline.rounds[0].accepted == 20
        assert pipeline.rounds[0].duplicates == 5

    def test_abandoned_slots_are_refilled_in_later_rounds(self):
        """A slot whose draws all collided becomes the next round's shortfall."""
        store = DuplicateFirstStore(duplicates=ATTEMPTS_PER_SLOT)
        # one thread runs the two workers of the first round in order
        pipeline = GenerationPipeline(store=store, max_threads=1)

        codes = pipeline.run(size=8, quantity=2)

        assert len(set(codes)) == 2
        assert [state.shortfall for state in pipeline.rounds] == [2, 1]
        assert pipeline.rounds[0].accepted == 1
        assert pipeline.rounds[0].duplicates == ATTEMPTS_PER_SLOT
        assert pipeline.rounds[1].accepted == 1

    def test_dense_feasible_space_completes(self):
        """Filling 39% of a small code space never stalls on late collisions."""
        for _ in range(40):
            codes = generate(2, 500)

            assert len(set(codes)) == 500

    def test_accepted_codes_are_in_store(self):
        store = InMemoryDedupStore()
        pipeline = GenerationPipeline(store=store)

        codes = pipeline.run(size=8, quantity=50, prefix="AB", namespace="promo")

        assert len(store) == 50
        assert all(build_key("promo", code) in store for code in codes)

    def test_shared_store_keeps_runs_disjoint(self):
        store = InMemoryDedupStore()

        first = generate(5, 200, store=store)
        second = generate(5, 200, store=store)

        assert not set(first) & set(second)

    def test_exhausted_space_raises_no_progress(self):
        """A store holding every possible code stops the run instead of looping."""
        alphabet = "AB"
        store = InMemoryDedupStore()
        store.seed(
            build_key("prefix", "".join(chars))
            for chars in itertools.product(alphabet, repeat=2)
        )
        pipeline = GenerationPipeline(UnbiasedSampler(alphabet), store)

        with pytest.raises(NoProgressError):
            pipeline.run(size=2, quantity=1)

        assert len(pipeline.rounds) == 1
        assert pipeline.rounds[0].accepted == 0

    def test_infeasible_request_rejected_before_sampling(self):
        def random_bytes(n):
            raise AssertionError("no sampling expected")

        pipeline = GenerationPipeline(UnbiasedSampler("ABCD", random_bytes))

        with pytest.raises(InfeasibleRequest):
            pipeline.run(size=1, quantity=20)

        assert pipeline.rounds == []

    def test_random_source_failure_propagates(self):
        def random_bytes(n):
            raise RandomSourceExhausted("entropy pool empty")

        pipeline = GenerationPipeline(UnbiasedSampler(DEFAULT_ALPHABET, random_bytes))

        with pytest.raises(RandomSourceExhausted):
            pipeline.run(size=6, quantity=10)

    def test_unexpected_worker_error_is_wrapped(self):
        pipeline = GenerationPipeline(store=BrokenStore())

        with pytest.raises(WorkerFailure) as exc_info:
            pipeline.run(size=6, quantity=10)

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_zero_quantity_returns_empty_list(self):
        pipeline = GenerationPipeline()

        assert pipeline.run(size=6, quantity=0) == []
        assert pipeline.rounds == []

    def test_prefix_must_be_shorter_than_size(self):
        with pytest.raises(ValueError):
            GenerationPipeline().run(size=4, quantity=1, prefix="ABCD")

    def test_invalid_size_and_quantity_raise_error(self):
        pipeline = GenerationPipeline()

        with pytest.raises(ValueError):
            pipeline.run(size=0, quantity=1)
        with pytest.raises(ValueError):
            pipeline.run(size=6, quantity=-1)

    def test_single_thread_pool(self):
        pipeline = GenerationPipeline(max_threads=1)

        codes = pipeline.run(size=6, quantity=120, prefix="Q")

        assert len(set(codes)) == 120


class TestRoundQuota:
    """Tests for per-round slot accounting."""

    def test_slots_are_reserved_and_released(self):
        quota = _RoundQuota(1)

        assert quota.reserve()
        assert not quota.reserve()
        quota.release()
        assert quota.reserve()

    def test_closed_quota_hands_out_no_slots(self):
        """A worker finishing after an abort cannot reopen a slot."""
        quota = _RoundQuota(1)
        assert quota.reserve()

        quota.close()
        quota.release()

        assert quota.closed
        assert not quota.reserve()
