"""
Relink: point every image's device-side filepath at a new root folder.
"""

import time
from dataclasses import dataclass
from typing import Optional, Sequence

from image_retriever.record_store import ImageRecord, RecordStore


@dataclass
class RelinkReport:
    new_root: str
    changed: int
    elapsed_ms: int


def is_valid_root(path: str) -> bool:
    """
    A new root must start at the device root and must not end with a separator,
    because every record name already starts with one.
    """
    return bool(path) and path.startswith("/") and not path.endswith("/")


def relink_paths(store: RecordStore, new_root: str,
                 records: Optional[Sequence[ImageRecord]] = None) -> RelinkReport:
    """
    Rewrite every record's filepath to new_root + name.

    Records are reloaded from the store when none are passed in.
    Raises ValueError if new_root is not a valid root.
    """
    if not is_valid_root(new_root):
        raise ValueError(f"New root must start with '/' and must not end with '/': {new_root!r}")

    if not records:
        records = store.fetch_records()

    started = time.perf_counter()
    changed = store.update_paths(new_root, records)
    elapsed_ms = int(round((time.perf_counter() - started) * 1000))
    return RelinkReport(new_root=new_root, changed=changed, elapsed_ms=elapsed_ms)
