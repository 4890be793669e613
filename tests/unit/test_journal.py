"""
Tests for UndoJournal.
"""
from types import SimpleNamespace

from liquidity_ledger import UndoJournal


class TestUndoJournal:

    def test_records_nothing_when_closed(self):
        journal = UndoJournal()
        book = {1: "a"}
        journal.record_item(book, 1)
        journal.record_attr(SimpleNamespace(x=1), "x")
        assert len(journal) == 0
        assert not journal.is_open

    def test_rollback_restores_items_and_attributes(self):
        journal = UndoJournal()
        book = {1: "a"}
        obj = SimpleNamespace(total=5)

        journal.begin()
        journal.record_item(book, 1)
        book[1] = "b"
        journal.record_item(book, 2)
        book[2] = "c"
        journal.record_attr(obj, "total")
        obj.total = 9
        journal.rollback()

        assert book == {1: "a"}
        assert obj.total == 5
        assert len(journal) == 0
        assert not journal.is_open

    def test_rollback_applies_newest_first(self):
        journal = UndoJournal()
        book = {1: "a"}

        journal.begin()
        journal.record_item(book, 1)
        book[1] = "b"
        journal.record_item(book, 1)
        book[1] = "c"
        journal.rollback()

        assert book == {1: "a"}

    def test_commit_keeps_changes(self):
        journal = UndoJournal()
        book = {}

        journal.begin()
        journal.record_item(book, 1)
        book[1] = "a"
        assert len(journal) == 1
        journal.commit()
        journal.rollback()

        assert book == {1: "a"}
