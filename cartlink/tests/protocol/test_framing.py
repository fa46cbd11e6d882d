from __future__ import annotations

from cartlink.protocol.framing import LineFramer

STREAM = (
    b'{"name":"Tetris","icon":null,"pathName":"/games/tetris"}\r\n'
    b"reader ready\n"
    b"\n"
    b'{"name":"P\xc3\xa9pin","icon":"p.png","pathName":"/g/p"}\n'
    b"TAG_REMOVED\n"
    b"trailing"
)


def _feed_chunks(data: bytes, size: int) -> tuple[list[str], bytes]:
    f = LineFramer()
    out: list[str] = []
    for i in range(0, len(data), size):
        out.extend(f.feed(data[i:i + size]))
    return out, f.pending


def test_single_chunk():
    f = LineFramer()
    lines = f.feed(STREAM)

    assert lines == [
        '{"name":"Tetris","icon":null,"pathName":"/games/tetris"}',
        "reader ready",
        '{"name":"Pépin","icon":"p.png","pathName":"/g/p"}',
        "TAG_REMOVED",
    ]
    assert f.pending == b"trailing"


def test_chunking_does_not_change_lines():
    expected, tail = _feed_chunks(STREAM, len(STREAM))
    for size in (1, 2, 3, 7, 16):
        lines, pending = _feed_chunks(STREAM, size)
        assert lines == expected, size
        assert pending == tail


def test_partial_line_is_held_until_terminated():
    f = LineFramer()
    assert f.feed(b'{"name":"Zel') == []
    assert f.feed(b'da","icon":null,') == []
    assert f.feed(b'"pathName":"/z"}\n') == ['{"name":"Zelda","icon":null,"pathName":"/z"}']
    assert f.pending == b""


def test_reset_discards_tail():
    f = LineFramer()
    f.feed(b"half a li")
    f.reset()
    assert f.pending == b""
    assert f.feed(b"ne\n") == ["ne"]


def test_empty_feed():
    f = LineFramer()
    assert f.feed(b"") == []
