"""Ledger Statistics — pure summaries of inventories, fusion history and rewards.

Invariants:
    - All inputs are already-loaded rows (no IO, no DB)
    - Returns flat dicts of counts (serializable as JSON)
    - Never raises on empty input: counts default to 0, rates to 0.0

Design Decisions:
    - Computed in Python over loaded rows, not SQL aggregates: identical
      behaviour on PostgreSQL and the SQLite test database
    - find_fusion_pairs mirrors the engine's compatibility rule (fusion_rules.is_compatible)
"""

from collections import Counter
from itertools import combinations
from typing import Iterable, Protocol
from uuid import UUID

from kinstone.core.domain_types import Rarity, RewardStatus, RewardType
from kinstone.core.fusion_rules import PieceLike, is_compatible
from kinstone.core.reward_payloads import numeric_value, parse_reward_value


class EntryLike(Protocol):
    id: UUID
    is_locked: bool
    serial_number: int
    piece: PieceLike


class FusionLike(Protocol):
    shape_family: str
    is_success: bool
    score_value: int


class RewardLike(Protocol):
    reward_type: str
    reward_value: dict
    status: str


def compute_inventory_stats(
    capacity: int, current_usage: int, entries: Iterable[EntryLike],
) -> dict:
    """Counts by rarity, unique shapes and locked entries."""
    entries = list(entries)
    by_rarity = Counter(Rarity(e.piece.rarity) for e in entries)
    stats = {
        "capacity": capacity,
        "current_usage": current_usage,
        "total_pieces": len(entries),
        "unique_shapes": len({e.piece.shape_family for e in entries}),
        "locked_pieces": sum(1 for e in entries if e.is_locked),
    }
    for rarity in Rarity:
        stats[f"{rarity.value}_count"] = by_rarity.get(rarity, 0)
    return stats


def find_fusion_pairs(entries: Iterable[EntryLike]) -> list[tuple[EntryLike, EntryLike]]:
    """Unlocked complementary pairs, each pair ordered by serial number."""
    candidates = sorted(
        (e for e in entries if not e.is_locked), key=lambda e: e.serial_number,
    )
    return [
        (a, b) for a, b in combinations(candidates, 2)
        if is_compatible(a.piece, b.piece)
    ]


def compute_fusion_stats(records: Iterable[FusionLike]) -> dict:
    """Attempts, successes, scores and a per-shape-family breakdown."""
    records = list(records)
    attempts = len(records)
    successes = sum(1 for r in records if r.is_success)
    total_score = sum(r.score_value for r in records)

    per_shape: dict[str, dict] = {}
    for r in records:
        shape = per_shape.setdefault(
            r.shape_family,
            {"shape_family": r.shape_family, "attempts": 0, "successes": 0, "total_score": 0},
        )
        shape["attempts"] += 1
        shape["successes"] += int(r.is_success)
        shape["total_score"] += r.score_value

    return {
        "total_attempts": attempts,
        "successful_fusions": successes,
        "failed_fusions": attempts - successes,
        "total_score": total_score,
        "average_score": total_score / attempts if attempts else 0.0,
        "highest_score": max((r.score_value for r in records), default=0),
        "unique_shapes_fused": len(
            {r.shape_family for r in records if r.is_success},
        ),
        "success_rate": successes / attempts if attempts else 0.0,
        "shape_family_stats": sorted(
            per_shape.values(), key=lambda s: s["total_score"], reverse=True,
        ),
    }


def compute_reward_stats(rewards: Iterable[RewardLike]) -> dict:
    """Counts by status and type, plus summed coins and points."""
    rewards = list(rewards)
    by_status = Counter(RewardStatus(r.status) for r in rewards)
    by_type = Counter(RewardType(r.reward_type) for r in rewards)
    totals = Counter()
    for r in rewards:
        payload = parse_reward_value(r.reward_type, r.reward_value)
        totals[RewardType(r.reward_type)] += numeric_value(payload)

    stats = {"total_rewards": len(rewards)}
    for status in RewardStatus:
        stats[f"{status.value}_rewards"] = by_status.get(status, 0)
    for reward_type in RewardType:
        stats[f"{reward_type.value}_rewards"] = by_type.get(reward_type, 0)
    stats["total_coins"] = totals.get(RewardType.COINS, 0)
    stats["total_points"] = totals.get(RewardType.POINTS, 0)
    return stats
