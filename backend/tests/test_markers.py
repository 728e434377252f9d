import pytest

from citeview.citations.markers import (
    contains_marker,
    decode,
    encode,
    iter_segments,
    normalize_legacy_markers,
)


def test_decode_accepts_only_complete_markers() -> None:
    assert decode("~~3==") == 3
    assert decode("~~042==") == 42
    assert decode("~~3=") is None
    assert decode("~3==") is None
    assert decode("~~==") is None
    assert decode("see ~~3==") is None
    assert decode("~~-1==") is None


def test_iter_segments_keeps_literal_text_in_order() -> None:
    assert list(iter_segments("Growth was strong ~~0== and steady ~~12==.")) == [
        "Growth was strong ",
        0,
        " and steady ",
        12,
        ".",
    ]


def test_iter_segments_handles_adjacent_markers_and_plain_text() -> None:
    assert list(iter_segments("~~0==~~1==")) == [0, 1]
    assert list(iter_segments("nothing to see")) == ["nothing to see"]
    assert list(iter_segments("")) == []


def test_legacy_markers_are_rewritten_to_current_sentinels() -> None:
    assert normalize_legacy_markers("old style ##2$$ marker") == "old style ~~2== marker"
    assert normalize_legacy_markers("price is $$5") == "price is $$5"
    assert contains_marker(normalize_legacy_markers("##7$$"))


def test_encode_rejects_negative_ordinals() -> None:
    assert encode(4) == "~~4=="
    with pytest.raises(ValueError):
        encode(-1)


def test_iter_segments_decodes_each_marker_through_decode(monkeypatch) -> None:
    seen: list[str] = []

    def recording_decode(token: str) -> int | None:
        seen.append(token)
        return None

    monkeypatch.setattr("citeview.citations.markers.decode", recording_decode)

    assert list(iter_segments("a ~~1== b ~~22==")) == ["a ~~1== b ~~22=="]
    assert seen == ["~~1==", "~~22=="]
