"""Tests for tab completion."""

from prompt_toolkit.document import Document

from cqlcli.cli.completion import CqlCompleter


def completer():
    result = CqlCompleter()
    result.update_schema(["shop", "system"], ["orders", "order_items", "customers"])
    return result


class TestCqlCompleter:
    """Tests for CqlCompleter."""

    def test_keywords(self):
        assert "SELECT" in completer().candidates("sel")

    def test_keyspaces_after_use(self):
        assert completer().candidates("USE sh") == ["shop"]

    def test_tables_after_from(self):
        candidates = completer().candidates("SELECT * FROM ord")
        assert candidates[-2:] == ["order_items", "orders"]

    def test_nothing_after_space(self):
        assert completer().candidates("SELECT ") == []

    def test_get_completions_replaces_word(self):
        document = Document("SELECT * FROM cus")
        completions = list(completer().get_completions(document, None))
        assert [c.text for c in completions] == ["customers"]
        assert completions[0].start_position == -3
