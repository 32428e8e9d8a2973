from harvest import constants as C
from harvest.classifier import ElementClassifier, decode_snowflake, first_element, parse_datetime_ms

from fakes import CHANNEL_ID, snowflake_for

NOW = 1_700_000_000_000


def _classifier():
    return ElementClassifier(clock=lambda: NOW)


def _node(html):
    return first_element(html)


def test_decode_snowflake_known_value():
    # 175928847299117063 -> 2016-04-30T11:18:25.796Z
    assert decode_snowflake(175928847299117063) == 1462015105796


def test_decode_snowflake_is_monotonic():
    ids = [snowflake_for(NOW - d * 1000, worker=w) for d in (500, 400, 399, 10, 0) for w in (0, 7)]
    ids.sort()
    decoded = [decode_snowflake(i) for i in ids]
    assert decoded == sorted(decoded)


def test_decode_snowflake_keeps_precision_for_large_ids():
    big = (2**63) - 1
    assert decode_snowflake(big) == (big >> 22) + C.SNOWFLAKE_EPOCH_MS


def test_parse_datetime_variants():
    assert parse_datetime_ms("2023-05-01T10:00:00.000Z") == 1682935200000
    assert parse_datetime_ms("2023-05-01T10:00:00+00:00") == 1682935200000
    assert parse_datetime_ms("2023-05-01T10:00:00") == 1682935200000
    assert parse_datetime_ms("not a date") is None
    assert parse_datetime_ms("") is None


def test_placeholder_by_role_and_busy():
    c = _classifier()
    assert c.is_placeholder(_node('<li role="progressbar">x</li>'))
    assert c.is_placeholder(_node('<li aria-busy="true">loading text</li>'))


def test_placeholder_by_class_tokens():
    c = _classifier()
    assert c.is_placeholder(_node('<li class="row Skeleton-x">hello</li>'))
    assert c.is_placeholder(_node('<li class="row"><span class="spinnerDots"></span>hello</li>'))


def test_placeholder_when_empty_without_media():
    c = _classifier()
    assert c.is_placeholder(_node('<li class="row"><div>   </div></li>'))
    assert not c.is_placeholder(_node('<li class="row"><img src="/a.png"></li>'))
    assert not c.is_placeholder(_node('<li class="row"><span>hi</span></li>'))


def test_custom_placeholder_tokens():
    c = ElementClassifier(["shimmer"], clock=lambda: NOW)
    assert c.is_placeholder(_node('<li class="shimmer">hi</li>'))
    assert not c.is_placeholder(_node('<li class="skeleton">hi</li>'))


def test_key_precedence():
    c = _classifier()
    node = _node('<li data-list-item-id="a" id="b" data-message-id="c" aria-labelledby="d">x</li>')
    assert c.extract_key(node, 0) == "a"
    assert c.extract_key(_node('<li id="b" data-message-id="c">x</li>'), 0) == "b"
    assert c.extract_key(_node('<li data-message-id="c" aria-labelledby="d">x</li>'), 0) == "c"
    assert c.extract_key(_node('<li aria-labelledby="d">x</li>'), 0) == "d"


def test_synthesized_keys_differ_by_content():
    c = _classifier()
    prefix = "p" * 40
    htmls = [f"<li><span>{prefix}{suffix}</span></li>" for suffix in ("one", "two", "three")]
    keys = {c.extract_key(_node(h), 3) for h in htmls}
    assert len(keys) == 3
    assert all(k.startswith("idx-3-" + prefix) for k in keys)


def test_synthesized_key_is_stable_for_same_item():
    c = _classifier()
    html = "<li><span>same text</span></li>"
    assert c.extract_key(_node(html), 2) == c.extract_key(_node(html), 2)


def test_order_prefers_time_element():
    c = _classifier()
    sf = snowflake_for(1_650_000_000_000)
    node = _node(f'<li id="chat-messages-{sf}"><time datetime="2023-05-01T10:00:00.000Z"></time>x</li>')
    assert c.extract_order(node, 0) == 1682935200000


def test_order_uses_message_part_of_compound_identifier():
    c = _classifier()
    ms = 1_650_000_000_000
    node = _node(f'<li data-list-item-id="chat-messages___chat-messages-{CHANNEL_ID}-{snowflake_for(ms)}">x</li>')
    assert c.extract_order(node, 0) == ms


def test_order_ignores_implausible_time():
    c = _classifier()
    ms = 1_650_000_000_000
    node = _node(f'<li id="m-{snowflake_for(ms)}"><time datetime="1970-01-02T00:00:00Z"></time>x</li>')
    assert c.extract_order(node, 0) == ms


def test_order_literal_timestamp_identifier():
    c = _classifier()
    assert c.extract_order(_node('<li id="msg-1650000000123">x</li>'), 0) == 1650000000123


def test_order_falls_back_to_capture_time_plus_index():
    c = _classifier()
    assert c.extract_order(_node('<li id="msg-42">x</li>'), 7, capture_ms=1000) == 1007
    assert c.extract_order(_node("<li>x</li>"), 3) == NOW + 3


def test_colliding_identifier_pattern_gets_distinct_keys_and_ordered_values():
    c = _classifier()
    sf = snowflake_for(1_650_000_000_000)
    early = f'<li data-list-item-id="chat-messages___chat-messages-{CHANNEL_ID}-{sf}"><time datetime="2023-05-01T10:00:00Z"></time>a</li>'
    late = f'<li data-list-item-id="chat-messages___chat-messages-{CHANNEL_ID}-{sf + 1}"><time datetime="2023-05-01T10:05:00Z"></time>b</li>'
    a = c.classify(_node(early), 0)
    b = c.classify(_node(late), 1)
    assert a.key != b.key
    assert a.order < b.order
    assert not a.is_placeholder and not b.is_placeholder
