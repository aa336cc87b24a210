"""Reward Schemas — claim requests and reward views.

Invariants:
    - reward_value is the tagged payload, validated against the discriminated union
"""

from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CoinsValue(BaseModel):
    type: Literal["coins"]
    value: int
    description: str = ""


class PointsValue(BaseModel):
    type: Literal["points"]
    value: int
    description: str = ""


class CosmeticValue(BaseModel):
    type: Literal["cosmetic"]
    item_key: str
    description: str = ""


class LootboxValue(BaseModel):
    type: Literal["lootbox"]
    box_key: str
    description: str = ""


class EventTriggerValue(BaseModel):
    type: Literal["event_trigger"]
    event_key: str
    description: str = ""


RewardValue = Annotated[
    Union[CoinsValue, PointsValue, CosmeticValue, LootboxValue, EventTriggerValue],
    Field(discriminator="type"),
]


class RewardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    fusion_id: UUID
    user_id: UUID
    reward_type: str
    reward_value: RewardValue
    status: str
    claimed_at: datetime | None = None
    created_at: datetime


class ClaimRequest(BaseModel):
    user_id: UUID


class RewardListResponse(BaseModel):
    rewards: list[RewardResponse]
