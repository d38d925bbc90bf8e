import pytest
import sqlite3
from pathlib import Path

from image_retriever.record_store import ImageRecord

# Same statement the LNReader app uses for its images table
IMAGES_DDL = """
    CREATE TABLE images (
        _id INTEGER PRIMARY KEY AUTOINCREMENT,
        name text UNIQUE NOT NULL,
        filepath text NOT NULL,
        url text NOT NULL,
        referer text,
        last_update integer,
        last_check integer,
        is_big_image boolean,
        parent text
    )
"""

OLD_ROOT = "/storage/emulated/0/Android/data/com.erakk.lnreader/files/images"

SAMPLE_ROWS = [
    (1, "/project/images/b/bc/cover.png", OLD_ROOT + "/project/images/b/bc/cover.png",
     "https://www.baka-tsuki.org/project/images/b/bc/cover.png", "https://www.baka-tsuki.org/",
     1500000000, 1500000100, 1, "Sword_Art_Online"),
    (2, "/project/images/0/00/TWGOK_02_017.jpg", OLD_ROOT + "/project/images/0/00/TWGOK_02_017.jpg",
     "https://www.baka-tsuki.org/project/images/0/00/TWGOK_02_017.jpg", None,
     1500000200, 1500000300, 0, "The_World_God_Only_Knows"),
    (3, "/project/images/a/a1/Illustration_3.jpg", OLD_ROOT + "/project/images/a/a1/Illustration_3.jpg",
     "https://www.baka-tsuki.org/project/images/a/a1/Illustration_3.jpg", "",
     1500000400, 1500000500, 0, "Sword_Art_Online"),
]


def create_db(path: Path, ddl: str = IMAGES_DDL, rows=SAMPLE_ROWS) -> Path:
    conn = sqlite3.connect(path)
    try:
        conn.execute(ddl)
        if rows:
            conn.executemany("INSERT INTO images VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)", rows)
        conn.commit()
    finally:
        conn.close()
    return path


def read_filepaths(path: Path) -> dict:
    conn = sqlite3.connect(path)
    try:
        return dict(conn.execute("SELECT _id, filepath FROM images").fetchall())
    finally:
        conn.close()


def make_record(id=1, name="/project/images/b/bc/cover.png", url=None, referer="") -> ImageRecord:
    return ImageRecord(
        id=id,
        name=name,
        file_path=OLD_ROOT + name,
        url=url or f"https://www.baka-tsuki.org{name}",
        referer=referer,
        last_update=1500000000,
        last_check=1500000100,
        is_big_image=False,
        parent="Sword_Art_Online",
    )


@pytest.fixture
def backup_db(tmp_path) -> Path:
    """A Backup_pages.db with the app's images table and three rows."""
    return create_db(tmp_path / "Backup_pages.db")


@pytest.fixture
def images_dir(tmp_path) -> Path:
    path = tmp_path / "images"
    path.mkdir()
    return path


@pytest.fixture
def log_path(tmp_path) -> Path:
    return tmp_path / "log.txt"
