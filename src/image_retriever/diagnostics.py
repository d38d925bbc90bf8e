"""
Append-only diagnostic log (log.txt).
Failures and already-downloaded advisories are written here for the operator to inspect later.
"""

import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import requests

from image_retriever.record_store import ImageRecord

DIVIDER = "-" * 70


def format_record(record: ImageRecord) -> str:
    """Full field dump of a record, one field per line."""
    return "\n".join([
        "Additional data about this image:",
        f"Image.ID: {record.id}",
        f"Image.Name: {record.name}",
        f"Image.FilePath: {record.file_path}",
        f"Image.Url: {record.url}",
        f"Image.Referer: {record.referer}",
        f"Image.LastUpdate: {record.last_update}",
        f"Image.LastCheck: {record.last_check}",
        f"Image.IsBigImage: {record.is_big_image}",
        f"Image.Parent: {record.parent}",
    ])


def format_error(error: BaseException) -> str:
    lines = [
        f"Type: {type(error).__name__}",
        f"Message: {error}",
    ]
    # requests attaches the response to HTTPError; connection errors have none
    response = getattr(error, "response", None)
    if isinstance(error, requests.RequestException) and response is not None:
        lines.append(f"Status: {response.status_code} {response.reason}")
        lines.append(f"Response URL: {response.url}")
    if error.__cause__ is not None:
        lines.append(f"Cause: {error.__cause__!r}")
    trace = "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip()
    lines.append(f"Stack Trace:\n{trace}")
    return "\n".join(lines)


class DiagnosticLog:
    """
    Human-readable, append-only log file.

    Each call opens the file, appends one block and closes it again, so nothing
    is held open across a long download pass. Write errors are printed and
    otherwise ignored: logging must never stop the batch.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _append(self, text: str) -> bool:
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(text)
            return True
        except OSError as e:
            print(f"[ERROR] Could not write to {self.path}: {e}", file=sys.stderr)
            return False

    def _block(self, *sections: str) -> bool:
        body = "\n\n".join(s for s in sections if s)
        return self._append(f"{body}\n\n{DIVIDER}\n\n")

    def start_session(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        return self._append(f"Log started at: {now.strftime('%Y-%m-%d %H:%M:%S')}\n{DIVIDER}\n\n")

    def advisory_already_downloaded(self, record: ImageRecord, destination: Path) -> bool:
        absolute = Path(destination).absolute()
        return self._block(
            "This image was already downloaded. Please check if the image is corrupted "
            "and if it is, delete it and run the app again\n"
            f"Location: {absolute.parent}\n"
            f"File: {absolute.name}\n"
            f"Absolute location of file: {absolute}",
            format_record(record),
        )

    def fetch_failure(self, record: ImageRecord, error: BaseException, destination: Path,
                      elapsed_ms: Optional[int] = None) -> bool:
        if isinstance(error, requests.RequestException):
            heading = "Network error occurred during download of image."
        else:
            heading = "Unexpected error occurred during download of image."
        context = [heading, f"Destination: {Path(destination).absolute()}",
                   f"Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"]
        if elapsed_ms is not None:
            context.append(f"Elapsed: {elapsed_ms} ms")
        return self._block("\n".join(context), format_error(error), format_record(record))

    def store_error(self, operation: str, error: BaseException) -> bool:
        return self._block(f"Database error during: {operation}", format_error(error))
