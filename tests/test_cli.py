import pytest
from unittest.mock import MagicMock, patch

from image_retriever import cli
from image_retriever.diagnostics import DiagnosticLog
from conftest import create_db, read_filepaths, IMAGES_DDL


def answers(*values):
    """input() replacement returning the given answers in order."""
    it = iter(values)
    return lambda prompt="": next(it)


@pytest.fixture
def session():
    """Session whose every GET succeeds."""
    session = MagicMock()
    response = MagicMock()
    response.iter_content.return_value = [b"\x89PNG"]
    session.get.return_value = response
    with patch("image_retriever.fetcher.create_session", return_value=session):
        yield session


@pytest.fixture
def run_args(tmp_path):
    return ["--images-dir", str(tmp_path / "images"), "--log", str(tmp_path / "log.txt")]


def test_prompt_db_file_reprompts_until_valid(tmp_path, backup_db, log_path):
    bad_schema = create_db(tmp_path / "bad.db", ddl=IMAGES_DDL.replace("parent text", "parent integer"), rows=[])
    log = DiagnosticLog(log_path)

    store = cli.prompt_db_file(log, answers(
        str(tmp_path / "Backup_pages.txt"),
        str(tmp_path / "nope.db"),
        str(bad_schema),
        str(backup_db),
    ))

    assert store.db_path == backup_db


def test_prompt_db_file_uses_default(monkeypatch, tmp_path, backup_db, log_path):
    monkeypatch.chdir(tmp_path)
    store = cli.prompt_db_file(DiagnosticLog(log_path), answers(""), default="Backup_pages.db")
    assert store.db_path.name == "Backup_pages.db"


def test_ask_yes_no_is_case_insensitive():
    assert cli.ask_yes_no("Relink", answers("maybe", "YES")) is True
    assert cli.ask_yes_no("Relink", answers("No")) is False


def test_prompt_new_root_reprompts(capsys):
    root = cli.prompt_new_root(answers("storage/x", "/storage/x/", "/storage/x"))
    assert root == "/storage/x"
    assert capsys.readouterr().out.count("must start with '/'") == 2


def test_full_interactive_run(tmp_path, backup_db, session, run_args, capsys):
    code = cli.main(run_args, input_fn=answers(
        str(backup_db),
        "yes",
        "/storage/sdcard/LNReader/images/",
        "/storage/sdcard/LNReader/images",
        "",
    ))

    assert code == 0
    images = tmp_path / "images"
    assert (images / "project" / "images" / "b" / "bc" / "cover.png").exists()
    assert read_filepaths(backup_db)[1] == "/storage/sdcard/LNReader/images/project/images/b/bc/cover.png"

    out = capsys.readouterr().out
    assert "Downloaded images: 3" in out
    assert "Changed 3 file paths" in out
    assert (tmp_path / "log.txt").read_text().startswith("Log started at:")


def test_declined_relink_leaves_paths(backup_db, session, run_args):
    before = read_filepaths(backup_db)
    assert cli.main(run_args, input_fn=answers(str(backup_db), "no", "")) == 0
    assert read_filepaths(backup_db) == before


def test_non_interactive_run(backup_db, session, run_args):
    prompts = MagicMock(side_effect=AssertionError("should not prompt"))
    code = cli.main(run_args + ["--db", str(backup_db), "--relink", "/new/root", "--no-pause"],
                    input_fn=prompts)
    assert code == 0
    assert read_filepaths(backup_db)[2] == "/new/root/project/images/0/00/TWGOK_02_017.jpg"


def test_second_run_counts_already_downloaded(backup_db, session, run_args, capsys):
    args = run_args + ["--db", str(backup_db), "--no-relink", "--no-pause"]
    cli.main(args)
    capsys.readouterr()

    cli.main(args)

    out = capsys.readouterr().out
    assert "Images already on disk: 3" in out
    assert "Total images stored in disk: 3" in out
    assert session.get.call_count == 3


def test_invalid_db_flag(tmp_path, run_args):
    assert cli.main(run_args + ["--db", str(tmp_path / "missing.db"), "--no-pause"]) == 1


def test_invalid_relink_flag(backup_db, run_args):
    assert cli.main(run_args + ["--db", str(backup_db), "--relink", "relative/path"]) == 1


def test_interrupt_at_prompt(run_args, capsys):
    def interrupted(prompt=""):
        raise KeyboardInterrupt

    assert cli.main(run_args, input_fn=interrupted) == 1
    assert "Aborted." in capsys.readouterr().out


def test_images_dir_blocked_by_file(tmp_path, backup_db, session, capsys):
    blocker = tmp_path / "images"
    blocker.write_text("not a folder")

    code = cli.main(["--images-dir", str(blocker), "--log", str(tmp_path / "log.txt"),
                     "--db", str(backup_db), "--no-relink", "--no-pause"])

    assert code == 1
    assert "Could not create images folder" in capsys.readouterr().err
    assert blocker.read_text() == "not a folder"
    session.get.assert_not_called()
