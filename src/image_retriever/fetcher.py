"""
Download every image record into the local images folder.

One pass, one record at a time, in input order. A failure on one record is
logged and counted, and never affects the next one.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import requests

from image_retriever.config import get_user_agent
from image_retriever.diagnostics import DiagnosticLog
from image_retriever.record_store import ImageRecord

DOWNLOADED = "downloaded"
FAILED = "failed"
ALREADY_DOWNLOADED = "already_downloaded"


@dataclass
class FetchResult:
    record: ImageRecord
    status: str  # downloaded, failed, already_downloaded
    destination: Path
    elapsed_ms: int = 0
    error: Optional[BaseException] = None


@dataclass
class FetchSummary:
    total: int = 0
    downloaded: int = 0
    failed: int = 0
    already_downloaded: int = 0
    results: List[FetchResult] = field(default_factory=list)

    @property
    def on_disk(self) -> int:
        """Images present in the images folder after the pass."""
        return self.downloaded + self.already_downloaded

    def add(self, result: FetchResult) -> None:
        self.results.append(result)
        if result.status == DOWNLOADED:
            self.downloaded += 1
        elif result.status == ALREADY_DOWNLOADED:
            self.already_downloaded += 1
        else:
            self.failed += 1


def destination_for(images_dir: Path, record: ImageRecord) -> Path:
    """
    images_dir + record.name.

    Raises ValueError when the name would land outside images_dir.
    """
    images_dir = Path(images_dir)
    relative = record.name.lstrip("/\\")
    if not relative:
        raise ValueError(f"Image {record.id} has an empty name")
    destination = images_dir / relative
    if images_dir.resolve() not in destination.resolve().parents:
        raise ValueError(f"Image {record.id} name {record.name!r} escapes {images_dir}")
    return destination


def create_session(user_agent: Optional[str] = None) -> requests.Session:
    """Session sending a browser User-Agent and asking every cache on the way to step aside."""
    session = requests.Session()
    session.headers.update({
        "User-Agent": user_agent or get_user_agent(),
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    })
    return session


def fetch_image(session: requests.Session, url: str, destination: Path,
                timeout: Optional[float] = None, referer: str = "") -> None:
    """
    Download url into destination. Raises on any failure.

    The destination may be left partially written when this raises; callers
    are expected to clean it up.
    """
    headers = {"Referer": referer} if referer else None
    response = session.get(url, headers=headers, timeout=timeout, stream=True)
    try:
        response.raise_for_status()
        with open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=8192):
                if chunk:
                    f.write(chunk)
    finally:
        response.close()


def _remove_partial(destination: Path) -> None:
    try:
        if destination.exists():
            destination.unlink()
    except OSError as e:
        print(f"[WARN] Could not remove partial file {destination}: {e}")


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


def process_record(
    session: requests.Session,
    record: ImageRecord,
    images_dir: Path,
    log: DiagnosticLog,
    timeout: Optional[float] = None,
    redownload_empty: bool = False,
) -> FetchResult:
    """
    Skip, fetch or fail a single record.

    Returns:
        FetchResult with status downloaded, already_downloaded or failed.
    """
    started = time.perf_counter()
    try:
        destination = destination_for(images_dir, record)
    except ValueError as e:
        destination = Path(images_dir) / record.name.lstrip("/\\")
        log.fetch_failure(record, e, destination)
        return FetchResult(record, FAILED, destination, _elapsed_ms(started), e)

    if destination.exists():
        if redownload_empty and destination.is_file() and destination.stat().st_size == 0:
            print(f"[WARN] {destination} is empty, downloading it again")
            _remove_partial(destination)
        else:
            log.advisory_already_downloaded(record, destination)
            return FetchResult(record, ALREADY_DOWNLOADED, destination, _elapsed_ms(started))

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        fetch_image(session, record.url, destination, timeout=timeout, referer=record.referer)
    except Exception as e:
        elapsed = _elapsed_ms(started)
        log.fetch_failure(record, e, destination, elapsed_ms=elapsed)
        _remove_partial(destination)
        return FetchResult(record, FAILED, destination, elapsed, e)

    return FetchResult(record, DOWNLOADED, destination, _elapsed_ms(started))


ProgressCallback = Callable[[int, int, ImageRecord, FetchResult], None]


def download_images(
    records: Sequence[ImageRecord],
    images_dir: Path,
    log: DiagnosticLog,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
    redownload_empty: bool = False,
    progress: Optional[ProgressCallback] = None,
) -> FetchSummary:
    """
    Run one download pass over records.

    Args:
        records: Records to fetch, processed strictly in order.
        images_dir: Root of the local image tree.
        log: Where failures and already-downloaded advisories go.
        session: HTTP session to reuse; a fresh one is created (and closed) if omitted.
        timeout: Per-fetch timeout in seconds, None for no explicit timeout.
        redownload_empty: Fetch again when an existing destination is a zero-byte file.
        progress: Called after each record with (index, total, record, result).

    Returns:
        FetchSummary with the counters and per-record results.
    """
    owns_session = session is None
    if owns_session:
        session = create_session()

    summary = FetchSummary(total=len(records))
    try:
        for i, record in enumerate(records, 1):
            result = process_record(session, record, Path(images_dir), log,
                                    timeout=timeout, redownload_empty=redownload_empty)
            summary.add(result)
            if progress is not None:
                progress(i, summary.total, record, result)
    finally:
        if owns_session:
            session.close()

    return summary
