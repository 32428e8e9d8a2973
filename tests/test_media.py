from harvest.classifier import first_element
from harvest.media import absolutize, absolutize_srcset, resolve_media

BASE = "https://chat.example.com/channels/@me/1"


def _img(html):
    return first_element(html).find("img")


def test_lazy_src_promoted_and_absolutized():
    out = resolve_media('<li><img data-src="/a/1.png" src="about:blank"></li>', BASE)
    img = _img(out)
    assert img["src"] == "https://chat.example.com/a/1.png"
    assert not img.has_attr("data-src")


def test_live_src_used_when_clone_has_none():
    live = [{"src": "https://cdn.example.com/x.png", "srcset": "", "poster": ""}]
    img = _img(resolve_media("<li><img></li>", BASE, live))
    assert img["src"] == "https://cdn.example.com/x.png"


def test_data_urls_untouched():
    img = _img(resolve_media('<li><img src="data:image/png;base64,AAAA"></li>', BASE))
    assert img["src"] == "data:image/png;base64,AAAA"


def test_srcset_and_poster():
    html = '<li><img data-srcset="/s.png 1x, /l.png 2x"><video poster="/p.jpg" src="/v.mp4"></video></li>'
    root = first_element(resolve_media(html, BASE))
    assert root.find("img")["srcset"] == "https://chat.example.com/s.png 1x, https://chat.example.com/l.png 2x"
    video = root.find("video")
    assert video["poster"] == "https://chat.example.com/p.jpg"
    assert video["src"] == "https://chat.example.com/v.mp4"


def test_about_blank_without_alternative_is_dropped():
    img = _img(resolve_media('<li><img src="about:blank"></li>', BASE))
    assert not img.has_attr("src")


def test_absolutize_helpers():
    assert absolutize("../x.png", "https://a.com/b/c/") == "https://a.com/b/x.png"
    assert absolutize("blob:https://a.com/1", "https://a.com/") == "blob:https://a.com/1"
    assert absolutize("/x.png", None) == "/x.png"
    assert absolutize_srcset("a.png 100w", "https://a.com/") == "https://a.com/a.png 100w"


def test_unparseable_html_returned_as_is():
    assert resolve_media("plain text", BASE) == "plain text"
