"""
SQLite gateway for the LNReader `images` table.
Validates the exported database, reads image records and rewrites file paths.
"""

import sqlite3
import sys
from pathlib import Path
from dataclasses import dataclass
from typing import List, Sequence, Union


@dataclass(frozen=True)
class ImageRecord:
    """One row of the LNReader `images` table."""
    id: int
    name: str  # Relative path, always starts with "/" (e.g. "/project/images/b/bc/Cover.png")
    file_path: str  # Where the app expects the file on the device
    url: str
    referer: str  # NULL in storage becomes ""
    last_update: int
    last_check: int
    is_big_image: bool
    parent: str


@dataclass(frozen=True)
class ColumnLayout:
    """A (column name, declared type) pair as reported by PRAGMA table_info."""
    column_name: str
    data_type: str

    def matches(self, other: "ColumnLayout") -> bool:
        # sqlite 3.37+ reports standard type names upper-cased (TEXT), custom ones (boolean) as declared
        return (self.column_name == other.column_name
                and self.data_type.casefold() == other.data_type.casefold())


# Exactly how the app creates the table.
IMAGES_LAYOUT = [
    ColumnLayout("_id", "INTEGER"),
    ColumnLayout("name", "text"),
    ColumnLayout("filepath", "text"),
    ColumnLayout("url", "text"),
    ColumnLayout("referer", "text"),
    ColumnLayout("last_update", "integer"),
    ColumnLayout("last_check", "integer"),
    ColumnLayout("is_big_image", "boolean"),
    ColumnLayout("parent", "text"),
]

SELECT_IMAGES = (
    "SELECT _id, name, filepath, url, referer, last_update, last_check, is_big_image, parent "
    "FROM images"
)
UPDATE_FILEPATH = "UPDATE images SET filepath = ? WHERE _id = ?"


def layout_matches(live: Sequence[ColumnLayout], expected: Sequence[ColumnLayout] = IMAGES_LAYOUT) -> bool:
    """Same columns in the same order, declared types compared case-insensitively."""
    return len(live) == len(expected) and all(a.matches(b) for a, b in zip(live, expected))


def relinked_path(new_root: str, record: ImageRecord) -> str:
    return new_root + record.name


def row_to_record(row: Sequence) -> ImageRecord:
    """Map a positional `images` row to an ImageRecord."""
    return ImageRecord(
        id=int(row[0]),
        name=row[1],
        file_path=row[2],
        url=row[3],
        referer=row[4] if row[4] is not None else "",
        last_update=int(row[5]) if row[5] is not None else 0,
        last_check=int(row[6]) if row[6] is not None else 0,
        is_big_image=bool(row[7]),
        parent=row[8] if row[8] is not None else "",
    )


class RecordStore:
    """
    Interface the download and relink passes depend on.
    Implementations report their own failures and return safe defaults.
    """

    def validate(self) -> bool:
        raise NotImplementedError

    def fetch_records(self) -> List[ImageRecord]:
        raise NotImplementedError

    def update_paths(self, new_root: str, records: Sequence[ImageRecord]) -> int:
        raise NotImplementedError


class SqliteRecordStore(RecordStore):
    """
    RecordStore backed by an exported `Backup_pages.db` file.

    Every operation opens its own connection and closes it before returning.
    The file is never created: a missing path is an invalid database.
    """

    def __init__(self, db_path: Union[str, Path], diagnostics=None):
        if db_path is None:
            raise ValueError("db_path is required")
        self.db_path = Path(db_path)
        self.diagnostics = diagnostics

    def _connect(self, mode: str) -> sqlite3.Connection:
        # URI form so that sqlite refuses to create a new, empty database.
        uri = f"{self.db_path.resolve().as_uri()}?mode={mode}"
        return sqlite3.connect(uri, uri=True)

    def _report(self, operation: str, error: Exception) -> None:
        print(f"[ERROR] {operation} failed for {self.db_path}: {error}", file=sys.stderr)
        if self.diagnostics is not None:
            self.diagnostics.store_error(operation, error)

    def read_layout(self) -> List[ColumnLayout]:
        """Return the live (name, declared type) layout of the `images` table."""
        conn = self._connect("ro")
        try:
            cursor = conn.execute("PRAGMA table_info('images')")
            return [ColumnLayout(row[1], row[2]) for row in cursor.fetchall()]
        finally:
            conn.close()

    def validate(self) -> bool:
        """Check that the file holds the `images` table exactly as the app lays it out."""
        try:
            layout = self.read_layout()
        except (sqlite3.Error, OSError) as e:
            self._report("Schema validation", e)
            return False
        return layout_matches(layout)

    def fetch_records(self) -> List[ImageRecord]:
        """Read every image row in natural scan order. Returns [] on failure."""
        try:
            conn = self._connect("ro")
            try:
                cursor = conn.execute(SELECT_IMAGES)
                return [row_to_record(row) for row in cursor]
            finally:
                conn.close()
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            self._report("Reading image records", e)
            return []

    def update_paths(self, new_root: str, records: Sequence[ImageRecord]) -> int:
        """
        Point every record's `filepath` at `new_root + record.name`.

        Runs as one transaction: either every row is committed or none is.
        Returns the rows sqlite reports as changed, which counts every matched
        row even when the stored value was already the same. Returns 0 when
        the transaction was rolled back.
        """
        changed = 0
        try:
            conn = self._connect("rw")
        except (sqlite3.Error, OSError) as e:
            self._report("Updating file paths", e)
            return 0

        try:
            with conn:
                for record in records:
                    cursor = conn.execute(UPDATE_FILEPATH, (relinked_path(new_root, record), record.id))
                    changed += cursor.rowcount
        except sqlite3.Error as e:
            self._report("Updating file paths", e)
            return 0
        finally:
            conn.close()

        return changed

