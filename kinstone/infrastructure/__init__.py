"""Infrastructure Layer — database sessions, lock registry, logging.

Invariants:
    - Infrastructure never imports from services/ or api/
    - Store exceptions leave this layer already mapped to core/errors.py types
"""
