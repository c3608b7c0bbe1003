from __future__ import annotations

import pytest

from filexfer.errors import FramingError, TransportError
from filexfer.framing import encode_request, encode_size
from filexfer.responder import Responder, resolve


@pytest.fixture
def root(tmp_path):
    r = tmp_path / "srv"
    r.mkdir()
    (r / "report.txt").write_bytes(b"hello world")
    (r / "empty").write_bytes(b"")
    (r / "sub").mkdir()
    (r / "sub" / "nested.bin").write_bytes(b"\x00\x01\x02")
    (tmp_path / "secret").write_bytes(b"nope")
    return r


def test_serves_file(fake_stream, root):
    s = fake_stream([encode_request(b"report.txt")])
    m = Responder(s, root, chunk_size=3).run()
    assert bytes(s.sent) == encode_size(11) + b"hello world"
    assert m.found and m.bytes_moved == 11
    assert s.closed


def test_serves_nested_path(fake_stream, root):
    s = fake_stream([encode_request(b"sub/nested.bin")])
    Responder(s, root).run()
    assert bytes(s.sent) == encode_size(3) + b"\x00\x01\x02"


def test_zero_length(fake_stream, root):
    s = fake_stream([encode_request(b"empty")])
    m = Responder(s, root).run()
    assert bytes(s.sent) == encode_size(0)
    assert m.found and m.total == 0


@pytest.mark.parametrize("name", [b"missing.bin", b"../secret", b"sub", b"", b"a\x00b"])
def test_not_found_sends_sentinel_only(fake_stream, root, name):
    s = fake_stream([encode_request(name)])
    m = Responder(s, root).run()
    assert bytes(s.sent) == encode_size(-1)
    assert not m.found
    assert s.closed


def test_absolute_path_outside_root(fake_stream, root, tmp_path):
    s = fake_stream([encode_request(str(tmp_path / "secret").encode())])
    Responder(s, root).run()
    assert bytes(s.sent) == encode_size(-1)


def test_truncated_request_sends_nothing(fake_stream, root):
    s = fake_stream([b"\x00\x00\x00\x09repo"])
    with pytest.raises(FramingError):
        Responder(s, root).run()
    assert s.sent == b""
    assert s.closed


def test_transport_failure_mid_payload(fake_stream, root):
    s = fake_stream([encode_request(b"report.txt")], send_limit=8 + 4)
    with pytest.raises(TransportError):
        Responder(s, root, chunk_size=4).run()
    assert bytes(s.sent) == encode_size(11) + b"hell"
    assert s.closed


def test_resolve(root):
    assert resolve(root, b"report.txt") == (root / "report.txt").resolve()
    assert resolve(root, b"sub/../report.txt") == (root / "report.txt").resolve()
    assert resolve(root, b"../srv/report.txt") == (root / "report.txt").resolve()
    assert resolve(root, b"../secret") is None


def test_overlong_path_component_is_not_found(fake_stream, root):
    s = fake_stream([encode_request(b"a" * 300)])
    m = Responder(s, root).run()
    assert bytes(s.sent) == encode_size(-1)
    assert not m.found
    assert resolve(root, b"a" * 300) is None


def test_symlink_loop_is_not_found(fake_stream, root):
    (root / "loop").symlink_to(root / "loop")
    s = fake_stream([encode_request(b"loop")])
    Responder(s, root).run()
    assert bytes(s.sent) == encode_size(-1)


def test_unopenable_file_is_not_found(fake_stream, root, monkeypatch):
    def refuse(*args, **kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr("filexfer.responder.open", refuse, raising=False)
    s = fake_stream([encode_request(b"report.txt")])
    m = Responder(s, root).run()
    assert bytes(s.sent) == encode_size(-1)
    assert not m.found
