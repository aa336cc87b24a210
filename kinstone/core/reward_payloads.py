"""Reward Payloads — tagged variants for the `reward_value` column, keyed by reward_type.

Invariants:
    - Each variant carries only the fields relevant to its RewardType
    - to_json() always embeds the `type` tag; parse_reward_value() rejects a tag
      that disagrees with the row's reward_type column
    - Variants are frozen: a payload never changes after the reward is issued

Design Decisions:
    - Frozen dataclasses over an open dict: the shape of each reward type is explicit
    - Registry dict (tag -> class) over isinstance chains: one place to add a variant
"""

from dataclasses import asdict, dataclass
from typing import ClassVar, Union

from kinstone.core.domain_types import RewardType
from kinstone.core.errors import InvalidInputError


@dataclass(frozen=True)
class CoinsReward:
    value: int
    description: str = ""
    reward_type: ClassVar[RewardType] = RewardType.COINS


@dataclass(frozen=True)
class PointsReward:
    value: int
    description: str = ""
    reward_type: ClassVar[RewardType] = RewardType.POINTS


@dataclass(frozen=True)
class CosmeticReward:
    item_key: str
    description: str = ""
    reward_type: ClassVar[RewardType] = RewardType.COSMETIC


@dataclass(frozen=True)
class LootboxReward:
    box_key: str
    description: str = ""
    reward_type: ClassVar[RewardType] = RewardType.LOOTBOX


@dataclass(frozen=True)
class EventTriggerReward:
    event_key: str
    description: str = ""
    reward_type: ClassVar[RewardType] = RewardType.EVENT_TRIGGER


RewardPayload = Union[
    CoinsReward, PointsReward, CosmeticReward, LootboxReward, EventTriggerReward,
]

_VARIANTS: dict[RewardType, type] = {
    RewardType.COINS: CoinsReward,
    RewardType.POINTS: PointsReward,
    RewardType.COSMETIC: CosmeticReward,
    RewardType.LOOTBOX: LootboxReward,
    RewardType.EVENT_TRIGGER: EventTriggerReward,
}


def to_json(payload: RewardPayload) -> dict:
    """Serialize a payload for the JSON column, tag included."""
    return {"type": payload.reward_type.value, **asdict(payload)}


def parse_reward_value(reward_type: RewardType | str, data: dict) -> RewardPayload:
    """Rebuild the variant stored in a reward row."""
    tag = RewardType(reward_type)
    stored_tag = data.get("type", tag.value)
    if stored_tag != tag.value:
        raise InvalidInputError(
            f"Reward payload tagged '{stored_tag}' does not match reward_type '{tag.value}'",
            field="reward_value",
        )
    cls = _VARIANTS[tag]
    fields = {k: v for k, v in data.items() if k != "type"}
    try:
        return cls(**fields)
    except TypeError as e:
        raise InvalidInputError(
            f"Malformed {tag.value} reward payload: {e}", field="reward_value",
        ) from e


def numeric_value(payload: RewardPayload) -> int:
    """Amount carried by countable rewards (coins, points); 0 for the others."""
    if isinstance(payload, (CoinsReward, PointsReward)):
        return payload.value
    return 0
