"""Concurrent generate / deduplicate / retry pipeline.

Generation runs in rounds. Each round splits the current shortfall into
chunks, one thread task per chunk. Every task samples candidates, prepends
the prefix and resolves each candidate through the dedup store. Duplicates
leave a gap that the next, smaller round fills, until exactly the requested
number of unique codes has been accepted.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from typing import Optional

from uniqcodes.dedup import DedupStore, InMemoryDedupStore, build_key
from uniqcodes.errors import CodeGenerationError, NoProgressError, WorkerFailure
from uniqcodes.feasibility import check_feasibility
from uniqcodes.sampler import DEFAULT_ALPHABET, UnbiasedSampler

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "prefix"

# Each round aims for roughly this many chunks
CHUNKS_PER_ROUND = 100

# Draws a worker may spend on one reserved slot before giving it back
ATTEMPTS_PER_SLOT = 64


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


@dataclass(frozen=True)
class RoundState:
    """Counters for one generation round.

    A round is planned from its shortfall, then finished with the number of
    codes it accepted and the duplicates it observed.
    """

    number: int
    shortfall: int
    chunk_size: int
    workers: int
    accepted: int = 0
    duplicates: int = 0

    @classmethod
    def plan(cls, number: int, shortfall: int) -> "RoundState":
        chunk_size = max(1, _ceil_div(shortfall, CHUNKS_PER_ROUND))
        return cls(
            number=number,
            shortfall=shortfall,
            chunk_size=chunk_size,
            workers=_ceil_div(shortfall, chunk_size),
        )

    def finish(self, accepted: int, duplicates: int) -> "RoundState":
        return replace(self, accepted=accepted, duplicates=duplicates)

    @property
    def made_progress(self) -> bool:
        return self.accepted > 0


@dataclass
class ChunkResult:
    """What a single worker task produced."""

    accepted: list[str] = field(default_factory=list)
    duplicates: int = 0


class _RoundQuota:
    """Acceptance slots shared by the workers of one round.

    A worker reserves a slot before probing the store, redraws on duplicates
    and gives the slot back only when every draw for it collided, so a round
    never accepts more than its shortfall.
    """

    def __init__(self, slots: int):
        self._remaining = slots
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def reserve(self) -> bool:
        with self._lock:
            if self._closed or self._remaining <= 0:
                return False
            self._remaining -= 1
            return True

    def release(self) -> None:
        with self._lock:
            if not self._closed:
                self._remaining += 1

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._remaining = 0


class GenerationPipeline:
    """Drives concurrent generation of unique codes.

    One pipeline instance runs one generation at a time; several pipelines
    may share a sampler and a dedup store.
    """

    def __init__(
        self,
        sampler: Optional[UnbiasedSampler] = None,
        store: Optional[DedupStore] = None,
        max_threads: Optional[int] = None,
    ):
        """Initialize pipeline.

        Args:
            sampler: Sampler producing the random part of each code
            store: Dedup store shared with other generators (default: new in-memory store)
            max_threads: Thread pool size (default: ThreadPoolExecutor's default)
        """
        self.sampler = sampler or UnbiasedSampler()
        self.store = store if store is not None else InMemoryDedupStore()
        self.max_threads = max_threads
        self.rounds: list[RoundState] = []

    def run(
        self,
        size: int,
        quantity: int,
        prefix: str = "",
        namespace: str = DEFAULT_NAMESPACE,
    ) -> list[str]:
        """Generate exactly quantity unique codes of length size.

        Args:
            size: Code length including the prefix
            quantity: Number of unique codes to generate
            prefix: Literal prefix of every code
            namespace: Namespace of the dedup keys

        Returns:
            List of unique codes in no particular order

        Raises:
            ValueError: If size, quantity or prefix are out of range
            InfeasibleRequest: If the code space is too small for quantity
            NoProgressError: If a round accepts no codes at all
            RandomSourceExhausted: If the random source fails
            WorkerFailure: If a worker fails unexpectedly
        """
        if size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        if quantity < 0:
            raise ValueError(f"quantity must be non-negative, got {quantity}")
        if len(prefix) >= size:
            raise ValueError(
                f"prefix {prefix!r} must be shorter than the code size {size}"
            )

        check_feasibility(len(self.sampler.alphabet), size, quantity)

        logger.info(
            f"Generating {quantity} codes (size={size}, prefix={prefix!r}, "
            f"namespace={namespace!r})"
        )
        start = time.monotonic()
        self.rounds = []
        codes: list[str] = []

        with ThreadPoolExecutor(
            max_workers=self.max_threads, thread_name_prefix="codegen"
        ) as executor:
            while len(codes) < quantity:
                state = RoundState.plan(len(self.rounds) + 1, quantity - len(codes))
                state, accepted = self._run_round(
                    executor, state, size - len(prefix), prefix, namespace
                )
                self.rounds.append(state)

                if not state.made_progress:
                    logger.error(
                        f"Round {state.number} accepted no codes "
                        f"({state.duplicates} duplicates), giving up"
                    )
                    raise NoProgressError(
                        f"Round {state.number} produced only duplicates; "
                        f"{state.shortfall} codes still missing"
                    )

                codes.extend(accepted)
                logger.info(
                    f"Round {state.number}: accepted {state.accepted}/{state.shortfall} "
                    f"with {state.workers} workers x {state.chunk_size}, "
                    f"{state.duplicates} duplicates"
                )

        logger.info(
            f"Generated {len(codes)} codes in {len(self.rounds)} rounds "
            f"({time.monotonic() - start:.2f} seconds)"
        )
        return codes

    def _run_round(
        self,
        executor: ThreadPoolExecutor,
        state: RoundState,
        sample_length: int,
        prefix: str,
        namespace: str,
    ) -> tuple[RoundState, list[str]]:
        quota = _RoundQuota(state.shortfall)
        futures: list[Future] = [
            executor.submit(
                self._produce_chunk,
                state.chunk_size,
                sample_length,
                prefix,
                namespace,
                quota,
            )
            for _ in range(state.workers)
        ]

        accepted: list[str] = []
        duplicates = 0
        try:
            for future in as_completed(futures):
                result = future.result()
                accepted.extend(result.accepted)
                duplicates += result.duplicates
        except CodeGenerationError:
            self._abort(futures, quota)
            raise
        except Exception as e:
            self._abort(futures, quota)
            logger.exception(f"Worker failed in round {state.number}: {e}")
            raise WorkerFailure(f"Worker failed in round {state.number}: {e}") from e

        return state.finish(len(accepted), duplicates), accepted

    @staticmethod
    def _abort(futures: list[Future], quota: _RoundQuota) -> None:
        quota.close()
        for future in futures:
            future.cancel()

    def _produce_chunk(
        self,
        chunk_size: int,
        sample_length: int,
        prefix: str,
        namespace: str,
        quota: _RoundQuota,
    ) -> ChunkResult:
        result = ChunkResult()
        for _ in range(chunk_size):
            if not quota.reserve():
                break
            for _ in range(ATTEMPTS_PER_SLOT):
                if quota.closed:
                    return result
                code = prefix + self.sampler.sample(sample_length)
                if self.store.check_and_insert(build_key(namespace, code)):
                    result.accepted.append(code)
                    break
                result.duplicates += 1
            else:
                quota.release()

        logger.debug(
            f"Chunk done: {len(result.accepted)} accepted, "
            f"{result.duplicates} duplicates"
        )
        return result


def generate(
    size: int,
    quantity: int,
    prefix: str = "",
    namespace: str = DEFAULT_NAMESPACE,
    alphabet: str = DEFAULT_ALPHABET,
    store: Optional[DedupStore] = None,
) -> list[str]:
    """Generate quantity unique codes; see GenerationPipeline.run."""
    pipeline = GenerationPipeline(UnbiasedSampler(alphabet), store)
    return pipeline.run(size, quantity, prefix, namespace)
