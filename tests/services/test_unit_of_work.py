"""Unit of work — store error mapping, commit and rollback boundaries."""

import sqlite3

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError

from kinstone.core.errors import (
    ConflictError, DatabaseError, InvalidInputError, LockTimeoutError,
)
from kinstone.infrastructure.database import map_db_error, unit_of_work
from kinstone.models.piece import Piece


class _PgError(Exception):
    def __init__(self, sqlstate):
        super().__init__(sqlstate)
        self.sqlstate = sqlstate


def test_integrity_error_maps_to_conflict():
    exc = IntegrityError("INSERT", {}, sqlite3.IntegrityError("UNIQUE"))
    assert isinstance(map_db_error(exc), ConflictError)


def test_lock_not_available_maps_to_lock_timeout():
    exc = OperationalError("SELECT", {}, _PgError("55P03"))
    assert isinstance(map_db_error(exc), LockTimeoutError)


def test_deadlock_maps_to_lock_timeout():
    exc = OperationalError("UPDATE", {}, _PgError("40P01"))
    assert isinstance(map_db_error(exc), LockTimeoutError)


def test_sqlite_busy_maps_to_lock_timeout():
    exc = OperationalError("UPDATE", {}, sqlite3.OperationalError("database is locked"))
    assert isinstance(map_db_error(exc), LockTimeoutError)


def test_other_operational_error_maps_to_database_error():
    exc = OperationalError("SELECT", {}, sqlite3.OperationalError("disk I/O error"))
    error = map_db_error(exc)
    assert isinstance(error, DatabaseError)
    assert error.http_status == 500


async def test_unit_of_work_commits_on_clean_exit(test_db, test_session_factory):
    async with unit_of_work(test_db):
        test_db.add(Piece(name="Star A", shape_family="star", half="A"))

    async with test_session_factory() as other:
        names = (await other.execute(select(Piece.name))).scalars().all()
    assert names == ["Star A"]


async def test_unit_of_work_rolls_back_on_domain_error(test_db):
    with pytest.raises(InvalidInputError):
        async with unit_of_work(test_db):
            test_db.add(Piece(name="Star A", shape_family="star", half="A"))
            await test_db.flush()
            raise InvalidInputError("nope")

    assert (await test_db.execute(select(Piece))).scalars().all() == []


async def test_unit_of_work_maps_store_errors(test_db):
    with pytest.raises(ConflictError):
        async with unit_of_work(test_db):
            test_db.add(Piece(name="Bad", shape_family="star", half="C"))
