"""Kinstone Fusion Package — atomic fusion engine, inventory ledger, reward lifecycle.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
