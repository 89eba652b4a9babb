"""Tests for the generated backlinks section."""
import pytest

from zettelkit.exceptions import NoteNotFoundError
from zettelkit.models.schema import Note
from zettelkit.services import backlink_service as backlink_module
from zettelkit.services.backlink_service import context_pattern, format_entry


@pytest.fixture
def cited(write_note, note_index):
    """Target 'T' linked from 'S' (with a citing paragraph) and from 'R'."""
    write_note("T", "# T\nBody of T. [[T]]\n")
    write_note(
        "S",
        "# S\n\nSee [[T]] (T.md) for\nmore.\n\nUnrelated paragraph.\n",
    )
    write_note("R", "Just [[T]].\n", project="p")
    note_index.generate()
    return note_index


class TestHelpers:
    def test_context_pattern(self):
        pattern = context_pattern("My Note")
        assert pattern.search("text (My Note.md) more")
        assert pattern.search("(see My Note)")
        assert not pattern.search("My Note.md")
        assert not pattern.search("(Other.md)")

    def test_context_pattern_needs_word_start(self):
        pattern = context_pattern("B")
        assert not pattern.search("I met Bob (in the AB) yesterday.")
        assert pattern.search("see (B.md)")
        assert pattern.search("(in the B)")

    def test_format_entry(self):
        entry = format_entry(Note(title="S"), ["one", "two"])
        assert entry == "* [[S]]\n\t* one\n\t* two\n\n"

    def test_format_entry_without_context(self):
        assert format_entry(Note(title="S"), []) == "* [[S]]\n\n"


class TestUpdateBacklinksSection:
    """Tests for writing the section into a note."""

    def test_section_appended(self, backlink_service, cited, zk_root):
        content = backlink_service.update_backlinks_section("T")
        expected = (
            "# T\nBody of T. [[T]]\n"
            "\n## Backlinks\n\n"
            "* [[S]]\n\t* See [[T]]  for more.\n\n"
            "* [[R]]\n\n"
        )
        assert content == expected
        assert (zk_root / "T.md").read_text() == expected

    def test_idempotent(self, backlink_service, cited, zk_root, monkeypatch):
        first = backlink_service.update_backlinks_section("T")

        writes = []
        monkeypatch.setattr(
            backlink_module, "atomic_write_text", lambda path, text: writes.append(path)
        )
        second = backlink_service.update_backlinks_section("T")

        assert second == first
        assert writes == []

    def test_existing_section_replaced(self, backlink_service, write_note, note_index, zk_root):
        write_note("T", "# T\n\n## Backlinks\n\n* [[Gone]]\n\t* stale\n\n")
        write_note("S", "[[T]]\n")
        note_index.generate()
        content = backlink_service.update_backlinks_section("T")
        assert content == "# T\n\n## Backlinks\n\n* [[S]]\n\n"

    def test_section_does_not_change_extraction(self, backlink_service, cited, zk_root):
        """Links inside the generated section are not indexed as links of T."""
        backlink_service.update_backlinks_section("T")
        assert cited.read_note(zk_root / "T.md").links == ["T"]
        assert cited.zettel_not_yet_created() == []

    def test_note_without_backlinks(self, backlink_service, write_note, note_index):
        write_note("Lonely", "# Lonely\n")
        note_index.generate()
        assert backlink_service.update_backlinks_section("Lonely") == (
            "# Lonely\n\n## Backlinks\n\n"
        )

    def test_missing_note(self, backlink_service, note_index):
        with pytest.raises(NoteNotFoundError):
            backlink_service.update_backlinks_section("Nope")

    def test_note_in_project(self, backlink_service, cited, zk_root):
        content = backlink_service.update_backlinks_section("R", project="p")
        assert content == "Just [[T]].\n\n## Backlinks\n\n"
        assert (zk_root / "p" / "R.md").read_text() == content

    def test_update_matching(self, backlink_service, cited, zk_root):
        updated = backlink_service.update_matching("[RS]")
        assert [o.note.label for o in updated] == ["[] S", "[p] R"]
        assert all(o.ok for o in updated)
        assert "## Backlinks" in (zk_root / "S.md").read_text()
        assert "## Backlinks" not in (zk_root / "T.md").read_text()

    def test_unrelated_parenthetical_is_not_context(
        self, backlink_service, write_note, note_index
    ):
        write_note("B", "# B\n")
        write_note("A", "[[B]]\n\nI met Bob (in the AB) yesterday.\n")
        note_index.generate()
        content = backlink_service.update_backlinks_section("B")
        assert content == "# B\n\n## Backlinks\n\n* [[A]]\n\n"


class TestMissingFiles:
    """A missing note file affects only its own entry."""

    @pytest.fixture
    def chain(self, write_note, note_index, zk_root):
        write_note("A", "[[B]] (B.md)\n")
        write_note("B", "# B\n")
        write_note("C", "[[B]] (B.md)\n")
        write_note("D", "[[C]]\n")
        note_index.generate()
        (zk_root / "A.md").unlink()
        return note_index

    def test_missing_source_has_no_context(self, backlink_service, chain):
        content = backlink_service.update_backlinks_section("B")
        assert content == "# B\n\n## Backlinks\n\n* [[A]]\n\n* [[C]]\n\t* [[B]] \n\n"

    def test_update_matching_continues(self, backlink_service, chain, zk_root):
        outcomes = backlink_service.update_matching("*")
        assert [o.note.label for o in outcomes] == ["[] A", "[] B", "[] C", "[] D"]
        assert [o.ok for o in outcomes] == [False, True, True, True]
        assert "No such note file" in outcomes[0].error
        for title in ("B", "C", "D"):
            assert "## Backlinks" in (zk_root / f"{title}.md").read_text()
