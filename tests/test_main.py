"""Command-line smoke tests."""
import sqlite3

import pytest

from zettelkit import main as cli
from zettelkit.services import sync_service as sync_module


@pytest.fixture
def run(test_config, monkeypatch, capsys):
    """Run the CLI against the temp collection; returns (status, stdout, stderr)."""
    monkeypatch.setattr(test_config, "log_level", "WARNING")
    monkeypatch.setattr(sync_module, "launch_editor", lambda path: None)
    # Handlers bound to captured streams would outlive the test
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)

    def _run(*argv):
        status = cli.main(list(argv))
        out, err = capsys.readouterr()
        return status, out, err

    return _run


@pytest.fixture
def collection(write_note, run):
    write_note("A", "# A\n[[B]] [[Ghost]] #sci \n")
    write_note("B", "# B\nsee [[A]] #sci/phys \n")
    write_note("C", "# C\nalone\n", project="work")
    write_note("D", "# D\nnothing here\n")
    status, out, _ = run("generate")
    assert status == 0
    assert "4 notes" in out
    return run


def test_zk_prints_directory(run, zk_root):
    status, out, _ = run("zk")
    assert status == 0
    assert out.strip() == str(zk_root)


def test_new_then_ls(run, zk_root):
    status, out, _ = run("new", "Fresh", "-p", "inbox")
    assert status == 0
    assert out.strip() == "[inbox] Fresh"
    assert (zk_root / "inbox" / "Fresh.md").read_text() == "# Fresh\n"

    status, out, _ = run("ls")
    assert out.splitlines() == ["[inbox] Fresh"]


def test_new_duplicate_fails(run, write_note):
    run("new", "Twice")
    status, _, err = run("new", "Twice")
    assert status == 1
    assert err.startswith("error: ")


def test_listing_commands(collection):
    run = collection
    assert run("query", "[AB]")[1].splitlines() == ["[] A", "[] B"]
    assert run("find", "sci")[1].splitlines() == ["[] A", "[] B"]
    assert run("tags")[1].splitlines() == ["sci", "sci/phys"]
    assert run("tags", "--count")[1].splitlines() == ["sci (1)", "sci/phys (1)"]
    assert run("projects")[1].splitlines() == ["work"]
    assert run("ghosts")[1].splitlines() == ["Ghost"]
    assert run("isolated")[1].splitlines() == ["[] D"]
    assert run("search", "nothing")[1].splitlines() == ["[] D"]


def test_links_and_backlinks(collection):
    run = collection
    assert run("links", "A")[1].splitlines() == ["[] A", "    | B", "    | Ghost"]
    assert run("backlinks", "A")[1].splitlines() == ["[] A", "    | [] B"]


def test_backlinks_write(collection, zk_root):
    status, out, _ = collection("backlinks", "A", "--write")
    assert status == 0
    assert out.splitlines() == ["[] A"]
    assert (zk_root / "A.md").read_text().endswith("\n## Backlinks\n\n* [[B]]\n\n")


def test_rename_with_yes(collection, zk_root):
    status, out, _ = collection("--yes", "rename", "B", "Bee")
    assert status == 0
    assert (zk_root / "Bee.md").exists()
    assert "[[Bee]]" in (zk_root / "A.md").read_text()
    assert "    | [] A" in out.splitlines()


def test_rename_declined_on_eof(collection, zk_root, monkeypatch):
    def no_input(prompt):
        raise EOFError

    monkeypatch.setattr("builtins.input", no_input)
    status, _, _ = collection("rename", "B", "Bee")
    assert status == 0
    assert (zk_root / "B.md").exists()
    assert not (zk_root / "Bee.md").exists()


def test_rename_missing(collection):
    status, _, err = collection("--yes", "rename", "Nope", "Other")
    assert status == 1
    assert "error:" in err


def test_mv_with_yes(collection, zk_root):
    status, out, _ = collection("--yes", "mv", "D", "archive")
    assert status == 0
    assert out.splitlines() == ["[archive] D"]
    assert (zk_root / "archive" / "D.md").exists()


def test_update(collection, zk_root):
    (zk_root / "D.md").write_text("# D\nnow [[A]]\n")
    status, _, _ = collection("update", str(zk_root / "D.md"))
    assert status == 0
    assert collection("backlinks", "A")[1].splitlines() == ["[] A", "    | [] B", "    | [] D"]


def test_update_missing_file(collection, zk_root):
    status, _, err = collection("update", str(zk_root / "Missing.md"))
    assert status == 1
    assert "No such note file" in err


def test_backlinks_write_reports_missing_file(collection, zk_root):
    (zk_root / "B.md").unlink()
    status, out, err = collection("backlinks", "*", "--write")
    assert status == 1
    assert "[] A" in out.splitlines()
    assert "error: [] B: No such note file" in err
    assert "## Backlinks" in (zk_root / "D.md").read_text()


@pytest.mark.parametrize(
    "argv, target",
    [
        (("isolated",), "zettelkit.storage.link_repository.LinkRepository.count_incoming"),
        (("tags", "--count"), "zettelkit.storage.tag_repository.TagRepository.get_with_counts"),
    ],
)
def test_corrupt_index_is_reported(collection, monkeypatch, argv, target):
    def malformed(self):
        raise sqlite3.DatabaseError("database disk image is malformed")

    monkeypatch.setattr(target, malformed)
    status, _, err = collection(*argv)
    assert status == 1
    assert err.startswith("error: Index")
