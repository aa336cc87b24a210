"""Request Schemas — boundary validation before requests reach the services."""

import pytest
from pydantic import ValidationError
from uuid import uuid4

from kinstone.core.domain_types import Provenance, Rarity
from kinstone.schemas.catalog import PieceCreate, UserCreate
from kinstone.schemas.inventory import AddEntryRequest, CapacityUpdate, LockRequest
from kinstone.schemas.reward import RewardResponse


def test_add_entry_defaults_to_drop():
    body = AddEntryRequest(piece_id=uuid4())
    assert body.provenance is Provenance.DROP


def test_add_entry_rejects_unknown_provenance():
    with pytest.raises(ValidationError):
        AddEntryRequest(piece_id=uuid4(), provenance="stolen")


def test_capacity_must_be_positive():
    with pytest.raises(ValidationError):
        CapacityUpdate(capacity=0)


def test_lock_request_needs_entries():
    with pytest.raises(ValidationError):
        LockRequest(entry_ids=[], locked=True)


def test_piece_create_strips_and_defaults():
    body = PieceCreate(name=" Star A ", shape_family=" star", half="A")
    assert body.name == "Star A"
    assert body.shape_family == "star"
    assert body.rarity is Rarity.COMMON


def test_piece_create_rejects_blank_shape():
    with pytest.raises(ValidationError):
        PieceCreate(name="Star A", shape_family="   ", half="A")


def test_user_handle_charset():
    with pytest.raises(ValidationError):
        UserCreate(handle="no spaces")
    assert UserCreate(handle="ok_handle-1").handle == "ok_handle-1"


def test_reward_value_discriminated_by_type():
    reward = RewardResponse.model_validate({
        "id": uuid4(), "fusion_id": uuid4(), "user_id": uuid4(),
        "reward_type": "cosmetic",
        "reward_value": {"type": "cosmetic", "item_key": "halo"},
        "status": "pending",
        "created_at": "2026-01-01T00:00:00Z",
    })
    assert reward.reward_value.item_key == "halo"

    with pytest.raises(ValidationError):
        RewardResponse.model_validate({
            "id": uuid4(), "fusion_id": uuid4(), "user_id": uuid4(),
            "reward_type": "coins",
            "reward_value": {"type": "coins"},
            "status": "pending",
            "created_at": "2026-01-01T00:00:00Z",
        })
