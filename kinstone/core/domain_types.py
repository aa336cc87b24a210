"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId, EntryId, PieceId, FusionId, RewardId wrap UUIDs
    - Rarity is totally ordered: common < uncommon < rare < epic < legendary
    - All valid states encoded as Enums, no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and to String columns without custom encoders
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", UUID)
EntryId = NewType("EntryId", UUID)
PieceId = NewType("PieceId", UUID)
FusionId = NewType("FusionId", UUID)
RewardId = NewType("RewardId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class PieceHalf(str, Enum):
    """The two complementary sides within a shape family."""
    A = "A"
    B = "B"


class Rarity(str, Enum):
    """Quality tier of a catalog piece — ordered by declaration."""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def rank(self) -> int:
        return _RARITY_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, Rarity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Rarity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Rarity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Rarity):
            return NotImplemented
        return self.rank >= other.rank


_RARITY_ORDER: tuple[Rarity, ...] = tuple(Rarity)


class Provenance(str, Enum):
    """How an inventory entry came into the owner's inventory."""
    DROP = "drop"
    REWARD = "reward"
    GRANT = "grant"
    ADMIN = "admin"


class RewardType(str, Enum):
    """Tag of the reward payload variant — maps to DB `reward_type` column."""
    POINTS = "points"
    COINS = "coins"
    COSMETIC = "cosmetic"
    LOOTBOX = "lootbox"
    EVENT_TRIGGER = "event_trigger"


class RewardStatus(str, Enum):
    """Reward lifecycle: pending -> claimed -> consumed, never backwards."""
    PENDING = "pending"
    CLAIMED = "claimed"
    CONSUMED = "consumed"
