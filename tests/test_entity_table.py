"""Tests for EntityTable key assignment and usage recording."""
import pytest

from dead_code_analyzer.analyzer.entity_table import EntityTable
from dead_code_analyzer.analyzer.extractor import Entity, EntityCategory
from dead_code_analyzer.config import RedeclarationPolicy


def make_entity(name, file_path="/p/lib/a.dart", line=1, offset=0, commented_out=False):
    return Entity(name, EntityCategory.CLASS, file_path, line, offset, commented_out=commented_out)


class TestKeys:
    def test_live_entity_uses_plain_name(self):
        """A live record is keyed by its plain name."""
        table = EntityTable()
        entity = make_entity("Foo")

        assert table.add(entity) == "Foo"
        assert entity.key == "Foo"
        assert table.get("Foo") is entity

    def test_commented_entity_gets_located_key(self):
        """A commented record gets a name@file:line:offset key."""
        table = EntityTable()
        key = table.add(make_entity("Foo", line=3, offset=40, commented_out=True))

        assert key == "Foo@/p/lib/a.dart:3:40"
        assert table.lookup("Foo") is None, "commented records are never looked up"

    def test_commented_and_live_coexist(self):
        """A commented and a live record of one name both stay."""
        table = EntityTable()
        table.add(make_entity("Foo", line=1, commented_out=True))
        live = make_entity("Foo", line=5, offset=60)
        table.add(live)

        assert len(table) == 2
        assert table.lookup("Foo") is live
        assert [entity.line for entity in table.candidates("Foo")] == [1, 5]


class TestRedeclaration:
    """Same plain name declared live in two files."""

    def test_last_wins_replaces(self):
        """Under last_wins a redeclaration replaces the record."""
        table = EntityTable(RedeclarationPolicy.LAST_WINS)
        table.add(make_entity("Foo", file_path="/p/lib/a.dart"))
        second = make_entity("Foo", file_path="/p/lib/b.dart")
        table.add(second)

        assert len(table) == 1
        assert table.get("Foo") is second
        assert table.candidates("Foo") == [second]

    def test_coexist_keeps_both(self):
        """Under coexist both records stay with distinct keys."""
        table = EntityTable(RedeclarationPolicy.COEXIST)
        first = make_entity("Foo", file_path="/p/lib/a.dart")
        second = make_entity("Foo", file_path="/p/lib/b.dart", line=2, offset=10)
        table.add(first)
        key = table.add(second)

        assert key == "Foo@/p/lib/b.dart:2:10"
        assert table.candidates("Foo") == [first, second]
        assert table.lookup("Foo") is second


class TestUsageRecording:
    def test_counts_accumulate(self):
        """Repeated count merges add up."""
        table = EntityTable()
        table.add(make_entity("Foo"))

        table.record_internal("Foo", 2)
        table.record_external("Foo", "/p/lib/b.dart", 1)
        table.record_external("Foo", "/p/lib/b.dart", 3)
        table.record_external("Foo", "/p/lib/c.dart", 1)
        entity = table.get("Foo")

        assert entity.internal_usage_count == 2
        assert entity.external_usages == {"/p/lib/b.dart": 4, "/p/lib/c.dart": 1}
        assert entity.total_usages == 7

    def test_negative_counts_rejected(self):
        """Negative counts raise ValueError."""
        table = EntityTable()
        table.add(make_entity("Foo"))

        with pytest.raises(ValueError):
            table.record_internal("Foo", -1)
        with pytest.raises(ValueError):
            table.record_external("Foo", "/p/lib/b.dart", -1)

    def test_names_and_membership(self):
        """names lists every plain name; `in` tests table keys."""
        table = EntityTable()
        table.add(make_entity("Foo"))
        table.add(make_entity("Bar", commented_out=True))

        assert table.names == {"Foo", "Bar"}
        assert "Foo" in table
        assert "Bar" not in table, "commented records are keyed by location"
