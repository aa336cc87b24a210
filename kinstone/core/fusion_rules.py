"""Fusion Rules — compatibility, score and reward tier for a pair of catalog pieces.

Invariants:
    - evaluate_fusion is PURE: returns an outcome descriptor, never touches the store
    - Compatible iff same shape_family AND different half
    - score_value == RARITY_SCORES[r1] + RARITY_SCORES[r2] when compatible, 0 otherwise
    - Reward tier: any legendary -> coins 1000; else any epic -> coins 500; else none.
      The legendary check runs first, so legendary + epic yields the legendary tier
    - An incompatible pair never earns a reward

Design Decisions:
    - RARITY_SCORES and the tier table are the single source of truth for the numbers
    - PieceLike Protocol: works on ORM Piece rows and plain test doubles alike
"""

from dataclasses import dataclass
from typing import Protocol

from kinstone.core.domain_types import PieceHalf, Rarity
from kinstone.core.reward_payloads import CoinsReward


RARITY_SCORES: dict[Rarity, int] = {
    Rarity.COMMON: 10,
    Rarity.UNCOMMON: 25,
    Rarity.RARE: 50,
    Rarity.EPIC: 100,
    Rarity.LEGENDARY: 250,
}

# Checked in order; first match wins.
REWARD_TIERS: tuple[tuple[Rarity, CoinsReward], ...] = (
    (Rarity.LEGENDARY, CoinsReward(value=1000, description="Legendary fusion bonus")),
    (Rarity.EPIC, CoinsReward(value=500, description="Epic fusion bonus")),
)


class PieceLike(Protocol):
    """Structural contract for catalog pieces passed to the rules."""
    shape_family: str
    half: str
    rarity: str


@dataclass(frozen=True)
class FusionOutcome:
    """Result of evaluating a pair: what the engine must persist."""
    is_success: bool
    score_value: int
    reward: CoinsReward | None


def is_compatible(piece_1: PieceLike, piece_2: PieceLike) -> bool:
    """Same shape family, opposite halves."""
    return (
        piece_1.shape_family == piece_2.shape_family
        and PieceHalf(piece_1.half) != PieceHalf(piece_2.half)
    )


def rarity_score(rarity: Rarity | str) -> int:
    return RARITY_SCORES[Rarity(rarity)]


def determine_reward(rarity_1: Rarity | str, rarity_2: Rarity | str) -> CoinsReward | None:
    """Reward earned by a successful fusion of the two rarities, if any."""
    rarities = {Rarity(rarity_1), Rarity(rarity_2)}
    for tier, reward in REWARD_TIERS:
        if tier in rarities:
            return reward
    return None


def evaluate_fusion(piece_1: PieceLike, piece_2: PieceLike) -> FusionOutcome:
    """Compute the outcome of fusing two pieces. Pure: no IO, no mutation."""
    if not is_compatible(piece_1, piece_2):
        return FusionOutcome(is_success=False, score_value=0, reward=None)
    return FusionOutcome(
        is_success=True,
        score_value=rarity_score(piece_1.rarity) + rarity_score(piece_2.rarity),
        reward=determine_reward(piece_1.rarity, piece_2.rarity),
    )
