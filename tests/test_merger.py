from harvest import constants as C
from harvest.acquisition import acquire
from harvest.cache import ItemRecord
from harvest.errors import ALREADY_MERGED, NO_CONTAINER
from harvest.merger import Merger, merge
from harvest.session import HarvestSession

from fakes import CHANNEL_ID, FakeBridge, FakeChat, snowflake_for


def _harvested(make_session, fast_config):
    session = make_session(FakeChat(total=50, initial=20))
    assert acquire(session, fast_config).ok
    return session


def test_merge_rebuilds_container_in_order(make_session, fast_config):
    session = _harvested(make_session, fast_config)
    result = merge(session)
    assert result.ok
    assert result.inserted_count == 51
    assert result.total_count == 51
    children = session.bridge.container_children
    assert "beginning of your direct message history" in children[0]
    positions = [children.index(r.html) for r in sorted(session.cache.snapshot()[1:], key=lambda r: r.order)]
    assert positions == sorted(positions)
    assert session.merged


def test_merge_runs_once_per_session(make_session, fast_config):
    session = _harvested(make_session, fast_config)
    assert merge(session).ok
    again = merge(session)
    assert not again.ok
    assert again.error == ALREADY_MERGED
    assert session.bridge.replace_calls == 1


def test_plan_is_deterministic(make_session, fast_config):
    session = _harvested(make_session, fast_config)
    snapshot = session.cache.snapshot()
    merger = Merger(session)
    first = [r.html for r in merger.plan(snapshot)]
    second = [r.html for r in merger.plan(list(reversed(snapshot)))]
    assert first == second


def test_same_snapshot_merges_identically_across_sessions(make_session, fast_config):
    source = _harvested(make_session, fast_config)
    snapshot = source.cache.snapshot()
    outputs = []
    for _ in range(2):
        target = HarvestSession(FakeBridge(FakeChat()))
        assert merge(target, snapshot).ok
        outputs.append("".join(target.bridge.container_children))
    assert outputs[0] == outputs[1]


def test_plan_sorts_by_order_then_sequence_and_skips_placeholders():
    session = HarvestSession(FakeBridge())
    records = [
        ItemRecord("late", 200, 0, "<li>late</li>"),
        ItemRecord("tie-b", 100, 5, "<li>tie b</li>"),
        ItemRecord("tie-a", 100, 2, "<li>tie a</li>"),
        ItemRecord("ghost", 50, 1, '<li class="skeleton"></li>'),
        ItemRecord(C.HEADER_KEY, C.HEADER_ORDER, C.HEADER_SEQUENCE, "<div>header</div>"),
    ]
    keys = [r.key for r in Merger(session).plan(records)]
    assert keys == [C.HEADER_KEY, "tie-a", "tie-b", "late"]


def test_plan_deduplicates_keys_keeping_first_capture():
    session = HarvestSession(FakeBridge())
    records = [ItemRecord("k", 1, 4, "<li>second</li>"), ItemRecord("k", 1, 1, "<li>first</li>")]
    assert [r.html for r in Merger(session).plan(records)] == ["<li>first</li>"]


def test_earlier_timestamp_placed_first_despite_later_capture():
    session = HarvestSession(FakeBridge())
    sf = snowflake_for(1_650_000_000_000)
    late = f'<li data-list-item-id="chat-messages___chat-messages-{CHANNEL_ID}-{sf}"><time datetime="2023-05-01T10:05:00Z"></time>b</li>'
    early = f'<li data-list-item-id="chat-messages___chat-messages-{CHANNEL_ID}-{sf + 1}"><time datetime="2023-05-01T10:00:00Z"></time>a</li>'
    for i, html in enumerate((late, early)):
        c = session.classifier.classify_html(html, i)
        session.cache.add(c.key, c.order, html)
    assert merge(session).ok
    assert session.bridge.container_children == [early, late]


def test_merge_without_container_reports_failure():
    class NoContainer(FakeBridge):
        def locate_container(self, selectors):
            return None

    session = HarvestSession(NoContainer())
    session.cache.add("k", 1, "<li>x</li>")
    result = merge(session)
    assert not result.ok
    assert result.error == NO_CONTAINER
    assert not session.merged


def test_merge_after_document_closed():
    bridge = FakeBridge()
    session = HarvestSession(bridge)
    session.cache.add("k", 1, "<li>x</li>")
    bridge.close()
    result = merge(session)
    assert not result.ok
    assert result.error.startswith("DOCUMENT_UNAVAILABLE")


def test_merge_empty_cache():
    result = merge(HarvestSession(FakeBridge()))
    assert not result.ok
    assert result.total_count == 0
