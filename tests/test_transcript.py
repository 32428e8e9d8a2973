from harvest.cache import ItemRecord
from harvest.transcript import render_transcript


def test_transcript_lists_records_in_given_order():
    records = [ItemRecord("a", 1, 0, "<div>first</div>"), ItemRecord("b", 2, 1, "<div>second</div>")]
    html = render_transcript(records, "alice <dm>")
    assert html.startswith("<!DOCTYPE html>")
    assert "<title>alice &lt;dm&gt;</title>" in html
    assert html.index("first") < html.index("second")
    assert html.count("<li ") == 2


def test_transcript_empty():
    html = render_transcript([], "")
    assert "Captured Chat Transcript" in html
    assert "<li " not in html
