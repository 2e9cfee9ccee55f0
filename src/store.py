"""Reviewer stores with whole-pool read and write semantics."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from src.schema import Reviewer, ensure_unique_names

DEFAULT_REVIEWER_DB_PATH = ".data/reviewers.sqlite"

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when the reviewer store cannot be read or written."""


class ReviewerStore(Protocol):
    """Protocol for the persistence collaborator used by the balancer."""

    def read_all(self) -> list[Reviewer]:
        """Return every tracked reviewer in stable storage order."""

    def write_all(self, reviewers: list[Reviewer]) -> None:
        """Persist workloads for every reviewer in one unit."""


class InMemoryReviewerStore:
    """Process-local store, mostly useful for tests and dry runs."""

    def __init__(self, reviewers: list[Reviewer] | None = None) -> None:
        self._reviewers = [reviewer.model_copy() for reviewer in ensure_unique_names(reviewers or [])]

    def read_all(self) -> list[Reviewer]:
        """Return copies so callers cannot mutate stored state."""
        return [reviewer.model_copy() for reviewer in self._reviewers]

    def write_all(self, reviewers: list[Reviewer]) -> None:
        """Replace stored values, keeping the original insertion order."""
        try:
            ensure_unique_names(reviewers)
        except ValueError as error:
            raise StoreError(str(error)) from error
        updates = {reviewer.name: reviewer for reviewer in reviewers}
        merged: list[Reviewer] = []
        for existing in self._reviewers:
            merged.append(updates.pop(existing.name, existing).model_copy())
        merged.extend(reviewer.model_copy() for reviewer in updates.values())
        self._reviewers = merged

    def add(self, reviewer: Reviewer) -> None:
        """Register a new reviewer."""
        if any(existing.name == reviewer.name for existing in self._reviewers):
            raise StoreError(f"Reviewer '{reviewer.name}' already exists.")
        self._reviewers.append(reviewer.model_copy())

    def remove(self, name: str) -> bool:
        """Drop a reviewer by name and report whether it existed."""
        remaining = [reviewer for reviewer in self._reviewers if reviewer.name != name]
        removed = len(remaining) != len(self._reviewers)
        self._reviewers = remaining
        return removed


class SqliteReviewerStore:
    """SQLite-backed reviewer table; one row per reviewer."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path)
        self._ensure_schema()

    @property
    def db_path(self) -> Path:
        """Location of the backing database file."""
        return self._db_path

    def _open_connection(self) -> sqlite3.Connection:
        """Open a SQLite connection."""
        return sqlite3.connect(self._db_path)

    def _ensure_schema(self) -> None:
        """Create the reviewers table if missing."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._open_connection() as connection:
                connection.execute(
                    """
                    CREATE TABLE IF NOT EXISTS reviewers (
                        name TEXT PRIMARY KEY,
                        workload INTEGER,
                        contact_handle TEXT NOT NULL DEFAULT ''
                    )
                    """
                )
        except (OSError, sqlite3.Error) as error:
            raise StoreError(f"Unable to initialize reviewer store at '{self._db_path}'.") from error

    def read_all(self) -> list[Reviewer]:
        """Read every reviewer ordered by insertion."""
        try:
            with self._open_connection() as connection:
                rows = connection.execute(
                    "SELECT name, workload, contact_handle FROM reviewers ORDER BY rowid"
                ).fetchall()
        except sqlite3.Error as error:
            raise StoreError(f"Unable to read reviewers from '{self._db_path}'.") from error

        reviewers: list[Reviewer] = []
        for name, workload, contact_handle in rows:
            try:
                reviewers.append(
                    Reviewer(
                        name=name,
                        workload=int(workload) if workload is not None else 0,
                        contact_handle=contact_handle or "",
                    )
                )
            except ValidationError as error:
                raise StoreError(f"Malformed reviewer row for '{name}'.") from error
        return reviewers

    def write_all(self, reviewers: list[Reviewer]) -> None:
        """Upsert all reviewers inside a single transaction."""
        try:
            ensure_unique_names(reviewers)
        except ValueError as error:
            raise StoreError(str(error)) from error
        try:
            with self._open_connection() as connection:
                connection.executemany(
                    """
                    INSERT INTO reviewers (name, workload, contact_handle)
                    VALUES (?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        workload=excluded.workload,
                        contact_handle=excluded.contact_handle
                    """,
                    [
                        (reviewer.name, reviewer.workload, reviewer.contact_handle)
                        for reviewer in reviewers
                    ],
                )
        except sqlite3.Error as error:
            raise StoreError(f"Unable to write reviewers to '{self._db_path}'.") from error
        logger.debug("Wrote %d reviewer rows to %s", len(reviewers), self._db_path)

    def add(self, reviewer: Reviewer) -> None:
        """Insert a new reviewer row."""
        try:
            with self._open_connection() as connection:
                connection.execute(
                    "INSERT INTO reviewers (name, workload, contact_handle) VALUES (?, ?, ?)",
                    (reviewer.name, reviewer.workload, reviewer.contact_handle),
                )
        except sqlite3.IntegrityError as error:
            raise StoreError(f"Reviewer '{reviewer.name}' already exists.") from error
        except sqlite3.Error as error:
            raise StoreError(f"Unable to add reviewer '{reviewer.name}'.") from error

    def remove(self, name: str) -> bool:
        """Delete a reviewer row and report whether it existed."""
        try:
            with self._open_connection() as connection:
                cursor = connection.execute("DELETE FROM reviewers WHERE name = ?", (name,))
        except sqlite3.Error as error:
            raise StoreError(f"Unable to remove reviewer '{name}'.") from error
        return cursor.rowcount > 0
