import json

from shelfscan_core.storage import PageItemWriter


def _lines(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


class TestPageItemWriter:

    def test_page_written_once(self, tmp_path):
        writer = PageItemWriter(str(tmp_path))
        assert writer.write_page_once("https://x.example/c", "<html>1</html>") is True
        assert writer.write_page_once("https://x.example/c", "<html>2</html>") is False
        assert [r["url"] for r in _lines(tmp_path / "pages.jsonl")] == ["https://x.example/c"]
        assert _lines(tmp_path / "pages.html.jsonl") == [{"url": "https://x.example/c", "html": "<html>1</html>"}]

    def test_seen_urls_survive_a_new_writer(self, tmp_path):
        PageItemWriter(str(tmp_path)).write_page_once("https://x.example/c", "a")
        assert PageItemWriter(str(tmp_path)).write_page_once("https://x.example/c", "b") is False

    def test_items_drop_private_keys(self, tmp_path):
        writer = PageItemWriter(str(tmp_path))
        n = writer.write_items([{"title": "T", "href": "/p/1", "_score": 4}, {"title": "U"}])
        assert n == 2
        assert _lines(tmp_path / "items.jsonl") == [{"title": "T", "href": "/p/1"}, {"title": "U"}]

    def test_stats(self, tmp_path):
        writer = PageItemWriter(str(tmp_path / "nested"))
        writer.write_page_once("https://x.example/a", "")
        writer.write_items([{"title": "T"}])
        assert writer.stats() == {"pages": 1, "pages_html": 1, "items": 1}
