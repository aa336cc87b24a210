"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - User is the aggregate root; inventories, entries and rewards are scoped by user

Design Decisions:
    - One file per entity (Inventory and its entries share one: they change together)
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from kinstone.models.user import User  # noqa: F401
from kinstone.models.piece import Piece  # noqa: F401
from kinstone.models.inventory import Inventory, InventoryEntry  # noqa: F401
from kinstone.models.fusion import FusionRecord  # noqa: F401
from kinstone.models.reward import Reward  # noqa: F401
