"""
Interactive console for restoring LNReader images.

1. Ask for the exported database and validate it.
2. Download every image into the images folder.
3. Optionally relink the image file paths stored in the database.
"""

import argparse
import sqlite3
import sys
from pathlib import Path
from typing import Callable, Optional, Tuple

from image_retriever import __version__
from image_retriever.config import get_db_file, get_fetch_timeout, get_images_dir, get_log_path
from image_retriever.diagnostics import DiagnosticLog
from image_retriever.fetcher import ALREADY_DOWNLOADED, FAILED, FetchResult, FetchSummary, download_images
from image_retriever.record_store import IMAGES_LAYOUT, ImageRecord, SqliteRecordStore
from image_retriever.relink import is_valid_root, relink_paths

InputFn = Callable[[str], str]


def print_banner(images_dir: Path) -> None:
    print(f"LNReader Image Retriever {__version__}")
    print()
    print("* * * * * * * * * * * *")
    print()
    print("Restores the images downloaded by the Baka-Tsuki LNReader Android app.")
    print("Use this if you've accidentally lost or deleted the downloaded images on your device.")
    print()
    print("Instructions:")
    print("1. Export the database from the LNReader app "
          "(Settings -> Storage -> Create Novel Database Backup).")
    print(f"2. Copy the Backup_pages.db file into {Path.cwd()}.")
    print("3. Run this tool and answer the prompts.")
    print("4. Wait for the downloads to finish. The terminal bell rings when done.")
    print(f"5. Copy the project folder from {images_dir.absolute()} into the "
          "Image Save Location configured in the LNReader app.")
    print()


def describe_layout_mismatch(store: SqliteRecordStore) -> None:
    """Print the live layout next to the expected one."""
    try:
        live = store.read_layout()
    except (sqlite3.Error, OSError):
        return
    if not live:
        print("  The database has no 'images' table.")
        return
    print("  Expected columns: " + ", ".join(f"{c.column_name} {c.data_type}" for c in IMAGES_LAYOUT))
    print("  Found columns:    " + ", ".join(f"{c.column_name} {c.data_type}" for c in live))


def check_db_file(db_file: str, log: DiagnosticLog) -> Tuple[bool, SqliteRecordStore]:
    store = SqliteRecordStore(db_file, diagnostics=log)
    if not db_file.endswith(".db"):
        print(f"[WARN] {db_file} is not a .db file.")
        return False, store
    if not Path(db_file).is_file():
        print(f"[WARN] {db_file} does not exist.")
        return False, store

    print(f"Checking if {db_file} is a valid database... ", end="")
    if not store.validate():
        print("Invalid.")
        describe_layout_mismatch(store)
        return False, store
    print("Ok.")
    return True, store


def prompt_db_file(log: DiagnosticLog, input_fn: InputFn = input,
                   default: Optional[str] = None) -> SqliteRecordStore:
    """Ask for the database file until a valid one is given."""
    default = default or get_db_file()
    while True:
        answer = input_fn(f"Database filename (leave empty for {default}): ").strip()
        db_file = answer or default
        ok, store = check_db_file(db_file, log)
        if ok:
            return store


def prepare_workspace(images_dir: Path, log: DiagnosticLog) -> bool:
    print("Checking workspace files... ", end="")
    try:
        images_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print("Failed.")
        print(f"[ERROR] Could not create images folder {images_dir}: {e}", file=sys.stderr)
        return False
    log.start_session()
    print("Ok.")
    return True


def make_progress(log: DiagnosticLog):
    """Console progress callback for download_images."""
    log_path = log.path.absolute()

    def print_progress(index: int, total: int, record: ImageRecord, result: FetchResult) -> None:
        prefix = f"[{index}/{total}]"
        if result.status == ALREADY_DOWNLOADED:
            print(f"{prefix} {result.destination} is already downloaded. Check {log_path}")
        elif result.status == FAILED:
            print(f"{prefix} Fetching {record.url}... Failed ({type(result.error).__name__}). "
                  f"See {log_path} for details.")
        else:
            print(f"{prefix} Fetching {record.url}... Done. {result.elapsed_ms} ms")

    return print_progress


def print_summary(summary: FetchSummary, log: DiagnosticLog) -> None:
    print()
    print("=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print(f"Total images in database: {summary.total}")
    print(f"Downloaded images: {summary.downloaded}")
    print(f"Images that failed to download: {summary.failed}")
    print(f"Images already on disk: {summary.already_downloaded}")
    print(f"Total images stored in disk: {summary.on_disk}")
    print(f"Check {log.path} for detailed errors. Images that were already on disk may be "
          "corrupted; the log lists their location. Delete any broken ones and run this tool again.")
    print("\a", end="", flush=True)


def ask_yes_no(question: str, input_fn: InputFn = input) -> bool:
    while True:
        answer = input_fn(f"{question} (Yes/No)? ").strip().lower()
        if answer in ("yes", "y"):
            return True
        if answer in ("no", "n"):
            return False


def print_relink_warning() -> None:
    print()
    print("WARNING: this changes the file path every image is read from by the Android app.")
    print("For example, if an image was stored under")
    print("  /storage/emulated/0/Android/data/com.erakk.lnreader/files/images/..")
    print("and you enter")
    print("  /storage/sdcard/LNReader/images")
    print("then the downloaded project folder must be copied to that new location.")
    print()
    print("The image's relative path is appended to the new location, e.g.")
    print("  /storage/sdcard/LNReader/images + /project/images/b/bc/Cover.png")
    print("  = /storage/sdcard/LNReader/images/project/images/b/bc/Cover.png")
    print()
    print("The location must start at the root of the device ('/') and must not end with '/'.")
    print("Examples:")
    print("  /storage/emulated/0/Android/data/com.erakk.lnreader/files/images")
    print("  /storage/emulated/0/LNReaderFiles/images")
    print()


def prompt_new_root(input_fn: InputFn = input) -> str:
    while True:
        new_root = input_fn("What would be the new location for all the images? ").strip()
        if is_valid_root(new_root):
            return new_root
        print("[WARN] The location must start with '/' and must not end with '/'.")


def run_relink(store: SqliteRecordStore, new_root: str, records) -> int:
    report = relink_paths(store, new_root, records)
    print(f"Changed {report.changed} file paths")
    print(f"{report.elapsed_ms} ms has elapsed for re-linking image file paths.")
    return report.changed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Restore images cached by the LNReader Android app")
    parser.add_argument("--db", help="Exported database file (skips the prompt)")
    parser.add_argument("--images-dir", type=Path, default=None, help="Where to save images (default: images)")
    parser.add_argument("--log", type=Path, default=None, help="Diagnostic log file (default: log.txt)")
    parser.add_argument("--timeout", type=float, default=None, help="Per-image timeout in seconds (default: none)")
    parser.add_argument("--redownload-empty", action="store_true",
                        help="Download again when an existing image file is empty")
    relink = parser.add_mutually_exclusive_group()
    relink.add_argument("--relink", metavar="ROOT", help="Relink file paths to ROOT without asking")
    relink.add_argument("--no-relink", action="store_true", help="Skip the relink step")
    parser.add_argument("--no-pause", action="store_true", help="Exit without waiting for Enter")
    return parser


def main(argv=None, input_fn: InputFn = input) -> int:
    args = build_parser().parse_args(argv)

    images_dir = args.images_dir or get_images_dir()
    log = DiagnosticLog(args.log or get_log_path())
    timeout = args.timeout if args.timeout is not None else get_fetch_timeout()

    if args.relink is not None and not is_valid_root(args.relink):
        print(f"[ERROR] --relink {args.relink!r}: the location must start with '/' "
              "and must not end with '/'.", file=sys.stderr)
        return 1

    try:
        print_banner(images_dir)

        if args.db:
            ok, store = check_db_file(args.db, log)
            if not ok:
                print(f"[ERROR] {args.db} is not a valid LNReader database.", file=sys.stderr)
                return 1
        else:
            store = prompt_db_file(log, input_fn)

        if not prepare_workspace(images_dir, log):
            return 1
        records = store.fetch_records()
        print(f"[INFO] You have {len(records)} images.")
        print()

        print(f"Downloading all {len(records)} images...")
        summary = download_images(records, images_dir, log, timeout=timeout,
                                  redownload_empty=args.redownload_empty, progress=make_progress(log))
        print_summary(summary, log)

        if args.relink is not None:
            run_relink(store, args.relink, records)
        elif not args.no_relink:
            if ask_yes_no("Relink the image paths in the database to be under the same folder location",
                          input_fn):
                print_relink_warning()
                run_relink(store, prompt_new_root(input_fn), records)

        if args.no_pause:
            print("Done!")
        else:
            input_fn("Done! Press Enter to exit")
    except (KeyboardInterrupt, EOFError):
        print()
        print("Aborted.")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
