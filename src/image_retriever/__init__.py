from pathlib import Path
from typing import Optional, Union

__version__ = "1.0.0"

from .record_store import ImageRecord, ColumnLayout, RecordStore, SqliteRecordStore, IMAGES_LAYOUT
from .diagnostics import DiagnosticLog
from .fetcher import FetchResult, FetchSummary, download_images
from .relink import RelinkReport, is_valid_root, relink_paths


def restore_images(
    db_path: Union[str, Path],
    images_dir: Union[str, Path] = "images",
    log_path: Union[str, Path] = "log.txt",
    timeout: Optional[float] = None,
) -> Optional[FetchSummary]:
    """
    Download every image listed in an LNReader database backup.
    Returns None if the database is not a valid LNReader backup.
    """
    log = DiagnosticLog(log_path)
    store = SqliteRecordStore(db_path, diagnostics=log)
    if not store.validate():
        return None

    images_dir = Path(images_dir)
    images_dir.mkdir(parents=True, exist_ok=True)
    log.start_session()
    return download_images(store.fetch_records(), images_dir, log, timeout=timeout)
