from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple, TypeVar

from .participants import Participant
from .project_constants import SEED_RANDOM_BYTES

T = TypeVar("T")

UINT32_RANGE = 1 << 32

RandBytes = Callable[[int], bytes]


@dataclass(frozen=True)
class Selection:
    winners: Tuple[Participant, ...]
    alternates: Tuple[Participant, ...]
    seed: str


def secure_random_int(max_value: int, randbytes: RandBytes = secrets.token_bytes) -> int:
    """
    Uniform integer in [0, max_value) from a CSPRNG.

    Draws unsigned 32-bit values and rejects those at or above the largest
    multiple of max_value, so the result carries no modulo bias.
    """
    if max_value <= 0:
        raise ValueError(f"max_value must be positive, got {max_value}")
    if max_value > UINT32_RANGE:
        raise ValueError(f"max_value must not exceed 2**32, got {max_value}")
    if max_value == 1:
        return 0

    limit = (UINT32_RANGE // max_value) * max_value
    while True:
        value = int.from_bytes(randbytes(4), "big")
        if value < limit:
            return value % max_value


def secure_shuffle(items: Sequence[T], randbytes: RandBytes = secrets.token_bytes) -> List[T]:
    """Fisher-Yates on a copy; ``items`` is left untouched."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = secure_random_int(i + 1, randbytes)
        result[i], result[j] = result[j], result[i]
    return result


def generate_seed() -> str:
    # Audit label only: the shuffle draws its own entropy.
    return secrets.token_hex(SEED_RANDOM_BYTES)


def clamp_counts(pool_size: int, winner_count: int, alternate_count: int) -> Tuple[int, int]:
    winners = min(max(winner_count, 0), pool_size)
    alternates = min(max(alternate_count, 0), pool_size - winners)
    return winners, alternates


def split_selection(
    ordered: Sequence[Participant], winner_count: int, alternate_count: int, seed: str
) -> Selection:
    """Winners, then alternates, as consecutive slices of one ordering."""
    w, a = clamp_counts(len(ordered), winner_count, alternate_count)
    return Selection(
        winners=tuple(ordered[:w]),
        alternates=tuple(ordered[w : w + a]),
        seed=seed,
    )


def select_winners(
    passed: Sequence[Participant],
    winner_count: int,
    alternate_count: int = 0,
    randbytes: RandBytes = secrets.token_bytes,
) -> Selection:
    seed = generate_seed()
    shuffled = secure_shuffle(passed, randbytes)
    return split_selection(shuffled, winner_count, alternate_count, seed)
