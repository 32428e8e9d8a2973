from harvest import constants as C
from harvest.cache import ItemRecord, MessageCache


def test_insert_if_absent_first_wins():
    cache = MessageCache()
    assert cache.add("k1", 10, "<li>first</li>") is not None
    assert cache.add("k1", 5, "<li>second</li>") is None
    assert cache.get("k1").html == "<li>first</li>"
    assert len(cache) == 1


def test_sequences_strictly_increase():
    cache = MessageCache()
    seqs = [cache.add(f"k{i}", 1, "<li>x</li>").sequence for i in range(5)]
    assert seqs == sorted(seqs)
    assert len(set(seqs)) == 5


def test_insert_record_advances_sequence():
    cache = MessageCache()
    assert cache.insert(ItemRecord("a", 1, 7, "<li>a</li>"))
    assert not cache.insert(ItemRecord("a", 1, 8, "<li>b</li>"))
    assert cache.add("b", 1, "<li>b</li>").sequence == 8


def test_header_slot_is_separate_and_first_wins():
    cache = MessageCache()
    assert not cache.insert(ItemRecord(C.HEADER_KEY, 0, 0, "<div>x</div>"))
    assert cache.set_header("<div>h1</div>")
    assert not cache.set_header("<div>h2</div>")
    cache.add("k", 1, "<li>k</li>")
    snap = cache.snapshot()
    assert len(cache) == 1
    assert [r.key for r in snap] == [C.HEADER_KEY, "k"]
    assert cache.header.html == "<div>h1</div>"
    assert cache.header.order < 0


def test_record_dict_keeps_order_precision():
    big = 2**70 + 1
    data = ItemRecord("k", big, 3, "<li/>").to_dict()
    assert data["order"] == str(big)
    assert ItemRecord.from_dict(data).order == big


def test_sort_key_orders_by_order_then_sequence():
    a = ItemRecord("k2", 5, 1, "<li>a</li>")
    b = ItemRecord("k1", 5, 0, "<li>b</li>")
    c = ItemRecord("k0", 4, 9, "<li>c</li>")
    assert sorted([a, b, c], key=lambda r: r.sort_key) == [c, b, a]
