"""Concurrent generator of unique, fixed-length random codes."""

from uniqcodes.dedup import DedupStore, InMemoryDedupStore, build_key
from uniqcodes.errors import (
    CodeGenerationError,
    InfeasibleRequest,
    InvalidAlphabet,
    NoProgressError,
    RandomSourceExhausted,
    WorkerFailure,
)
from uniqcodes.feasibility import check_feasibility, count_permutations
from uniqcodes.pipeline import GenerationPipeline, RoundState, generate
from uniqcodes.sampler import DEFAULT_ALPHABET, UnbiasedSampler, secure_random_string

__all__ = [
    "CodeGenerationError",
    "DEFAULT_ALPHABET",
    "DedupStore",
    "GenerationPipeline",
    "InMemoryDedupStore",
    "InfeasibleRequest",
    "InvalidAlphabet",
    "NoProgressError",
    "RandomSourceExhausted",
    "RoundState",
    "UnbiasedSampler",
    "WorkerFailure",
    "build_key",
    "check_feasibility",
    "count_permutations",
    "generate",
    "secure_random_string",
]
