import io
import random

import pytest

from apkreader.errors import ApkDecodeError, TruncatedStreamError
from apkreader.zstream import ApkStream, SegmentState

from .conftest import gz

rng = random.Random(1234)
CONTENTS = [
    b"first segment " * 100,
    rng.randbytes(200_000),  # incompressible, spans several read chunks
    b"",
    b"last\n" * 5000,
]
SEGMENTS = [gz(content) for content in CONTENTS]


class CountingReader(io.BytesIO):
    def __init__(self, data: bytes):
        super().__init__(data)
        self.reads = 0
        self.close_calls = 0

    def read(self, size=-1):
        self.reads += 1
        return super().read(size)

    def close(self):
        self.close_calls += 1
        super().close()


def read_segment(stream: ApkStream, size: int) -> bytes:
    out = bytearray()
    while chunk := stream.read(size):
        assert size < 0 or len(chunk) <= size
        out += chunk
    return bytes(out)


@pytest.mark.parametrize("size", [1, 333, 4096, 65536, -1])
def test_segments_read_back_in_order(size):
    stream = ApkStream(io.BytesIO(b"".join(SEGMENTS)))
    if size == 1:
        # byte-at-a-time over 200k random bytes is slow; check the small segments only
        assert read_segment(stream, size) == CONTENTS[0]
        return

    results = []
    for i in range(len(SEGMENTS)):
        if i:
            assert stream.reset() is SegmentState.MORE_DATA
        results.append(read_segment(stream, size))
    assert results == CONTENTS
    assert stream.reset() is SegmentState.END_OF_SOURCE


@pytest.mark.parametrize("size", [1, 17, 4096, -1])
def test_observer_sees_exactly_one_segments_compressed_bytes(size):
    seen = bytearray()
    stream = ApkStream(io.BytesIO(b"".join(SEGMENTS[2:])), observer=None)
    assert read_segment(stream, size) == CONTENTS[2]
    assert stream.reset(observer=seen.extend) is SegmentState.MORE_DATA
    assert read_segment(stream, size) == CONTENTS[3]

    assert len(seen) == len(SEGMENTS[3])
    assert bytes(seen) == SEGMENTS[3]


def test_observer_from_open_covers_first_segment():
    seen = []
    stream = ApkStream.open(io.BytesIO(SEGMENTS[1] + SEGMENTS[0]), observer=seen.append)
    assert read_segment(stream, 8192) == CONTENTS[1]
    assert sum(len(chunk) for chunk in seen) == len(SEGMENTS[1])


def test_reads_after_end_of_segment_do_not_touch_source():
    source = CountingReader(SEGMENTS[0] + SEGMENTS[3])
    stream = ApkStream(source)
    assert stream.read() == CONTENTS[0]
    reads = source.reads
    assert stream.read(10) == b""
    assert stream.read() == b""
    assert source.reads == reads


def test_truncated_segment():
    stream = ApkStream(io.BytesIO(SEGMENTS[3][: len(SEGMENTS[3]) // 2]))
    with pytest.raises(TruncatedStreamError):
        stream.read()


def test_corrupt_data():
    stream = ApkStream(io.BytesIO(b"this is not compressed at all" * 10), name="bogus.apk")
    with pytest.raises(ApkDecodeError) as excinfo:
        stream.read(100)
    assert str(excinfo.value).startswith("bogus.apk: ")


def test_reset_at_end_of_source():
    stream = ApkStream(io.BytesIO(SEGMENTS[0]))
    stream.read()
    assert stream.reset() is SegmentState.END_OF_SOURCE


def test_close_releases_source_once():
    source = CountingReader(SEGMENTS[0])
    with ApkStream(source) as stream:
        stream.read(5)
    stream.close()
    assert source.close_calls == 1
    with pytest.raises(ValueError):
        stream.read()
