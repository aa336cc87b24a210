"""Database Package — declarative Base and standalone session factory.

Invariants:
    - Single async engine per process for the API (see infrastructure/database.py)
    - All sessions are async (AsyncSession)

Design Decisions:
    - asyncpg driver for PostgreSQL; aiosqlite in tests
"""
