from harvester.utils.dedup import DedupIndex


def test_accept_registers_once():
    index = DedupIndex()
    assert index.accept("a") is True
    assert index.accept("a") is False
    assert index.accept("b") is True
    assert "a" in index
    assert "c" not in index
    assert len(index) == 2


def test_seeded_keys_are_already_seen():
    index = DedupIndex(["a", "b"])
    assert index.accept("a") is False
    assert index.accept("c") is True
    assert len(index) == 3
