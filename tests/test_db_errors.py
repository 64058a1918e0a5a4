from __future__ import annotations

import sqlite3
import unittest

from sqlalchemy.exc import IntegrityError, OperationalError

from partsmarket.utils.db_errors import is_unique_violation


class _Diag:
    def __init__(self, constraint_name: str):
        self.constraint_name = constraint_name


class _PgError(Exception):
    def __init__(self, pgcode: str, constraint_name: str = "", message: str = ""):
        super().__init__(message)
        self.pgcode = pgcode
        self.diag = _Diag(constraint_name)


def _integrity(orig) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, orig)


class UniqueViolationTestCase(unittest.TestCase):
    def test_postgres_sqlstate_and_constraint_name(self):
        exc = _integrity(_PgError("23505", "uq_listings_active_seller_signature", "duplicate key value"))
        self.assertTrue(is_unique_violation(exc))
        self.assertTrue(is_unique_violation(exc, constraint="uq_listings_active_seller_signature"))
        self.assertFalse(is_unique_violation(exc, constraint="uq_demands_open_signature"))

    def test_other_postgres_codes_are_not_unique_violations(self):
        exc = _integrity(_PgError("23503", "fk_listings_brand", "foreign key violation"))
        self.assertFalse(is_unique_violation(exc))

    def test_sqlite_message_narrowed_by_table(self):
        orig = sqlite3.IntegrityError("UNIQUE constraint failed: demands.requester_user_id, demands.brand_id")
        exc = _integrity(orig)
        self.assertTrue(is_unique_violation(exc, constraint="uq_demands_open_signature", table="demands"))
        self.assertFalse(is_unique_violation(exc, table="listings"))

    def test_sqlite_not_null_is_not_unique(self):
        exc = _integrity(sqlite3.IntegrityError("NOT NULL constraint failed: demands.part_id"))
        self.assertFalse(is_unique_violation(exc))

    def test_non_integrity_errors(self):
        exc = OperationalError("SELECT 1", {}, sqlite3.OperationalError("database is locked"))
        self.assertFalse(is_unique_violation(exc))
        self.assertFalse(is_unique_violation(ValueError("UNIQUE constraint failed")))


if __name__ == "__main__":
    unittest.main()
