"""Services Layer — IO orchestration around the pure core.

Invariants:
    - One service per component: ConcurrencyControl, InventoryLedger, FusionEngine,
      RewardIssuer, plus CatalogService for users and pieces
    - Every service receives its AsyncSession explicitly; none opens its own connection
"""
