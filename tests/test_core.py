import io

import pytest

from helpers import as_text, geb_header, geb_words, make_reader, vfat_words
from pyvfat.core import EventStreamDecoder, GemDataFile
from pyvfat.errors import (MalformedHeader, MalformedToken, StreamFault, TruncatedFrame,
                           UnreasonableCount)
from pyvfat.geb_frame import GEBFrame
from pyvfat.sinks import FrameCollector, FrameSink
from pyvfat.tokens import TokenReader
from pyvfat.vfat_frame import VFATFrame


class FailingStream:
    """Text stream that serves some lines, then fails with an I/O error."""

    def __init__(self, lines):
        self.lines = list(lines)

    def readline(self):
        if self.lines:
            return self.lines.pop(0)
        raise OSError("device not ready")


class RecordingSink(FrameSink):
    def __init__(self, fail_on_frame=False):
        self.frames = 0
        self.ends = []
        self.fail_on_frame = fail_on_frame

    def on_frame_decoded(self, frame):
        if self.fail_on_frame:
            raise RuntimeError("sink is full")
        self.frames += 1

    def on_stream_end(self, reason):
        self.ends.append(reason)


def test_one_geb_then_clean_end():
    decoder = EventStreamDecoder(make_reader(geb_words([vfat_words(), vfat_words()])))

    geb = decoder.decode_next()
    assert isinstance(geb, GEBFrame)
    assert len(geb.vfats) == 2
    assert decoder.decode_next() is None
    assert decoder.decode_next() is None
    assert decoder.events_decoded == 1


def test_truncated_after_header():
    decoder = EventStreamDecoder(make_reader([f"{geb_header(2):016x}"]))
    with pytest.raises(TruncatedFrame):
        decoder.decode_next()


def test_trailing_blank_lines_end_cleanly():
    text = as_text(geb_words([vfat_words()])) + "\n   \n\n"
    decoder = EventStreamDecoder(TokenReader(io.StringIO(text)))
    assert len(list(decoder)) == 1


def test_iteration():
    tokens = geb_words([vfat_words(ec=1)]) + geb_words([vfat_words(ec=2), vfat_words(ec=2)])
    frames = list(EventStreamDecoder(make_reader(tokens)))
    assert [len(f.vfats) for f in frames] == [1, 2]
    assert [f.vfats[0].ec for f in frames] == [1, 2]


def test_empty_stream():
    assert EventStreamDecoder(make_reader([])).decode_next() is None


def test_unknown_format():
    with pytest.raises(ValueError):
        EventStreamDecoder(make_reader([]), data_format="vme")


def test_malformed_token_then_stream_fault():
    tokens = geb_words([vfat_words()])
    tokens[3] = "not-hex"
    decoder = EventStreamDecoder(make_reader(tokens + geb_words([vfat_words()])))
    with pytest.raises(MalformedToken):
        decoder.decode_next()
    with pytest.raises(StreamFault):
        decoder.decode_next()


def test_unreasonable_count():
    decoder = EventStreamDecoder(make_reader([f"{geb_header(0xFFFFFFF):016x}"]))
    with pytest.raises(UnreasonableCount):
        decoder.decode_next()


def test_run_clean():
    tokens = geb_words([vfat_words()]) + geb_words([vfat_words(chip_control=0x0)])
    sink = FrameCollector()
    end = EventStreamDecoder(make_reader(tokens)).run(sink)

    assert end.reason == "clean"
    assert end.events == 2
    assert end.error is None
    assert sink.end_reason == "clean"
    # frames with bad control bits are delivered too
    assert [f.control_mismatch for f in sink.frames] == [False, True]


def test_run_truncated_discards_partial_event():
    tokens = geb_words([vfat_words()]) + geb_words([vfat_words(), vfat_words()])[:-3]
    sink = FrameCollector()
    end = EventStreamDecoder(make_reader(tokens)).run(sink)

    assert end.reason == "truncated"
    assert isinstance(end.error, TruncatedFrame)
    assert len(sink.frames) == 1
    assert sink.end_reason == "truncated"


def test_run_fault():
    tokens = geb_words([vfat_words()]) + ["zz"]
    sink = FrameCollector()
    end = EventStreamDecoder(make_reader(tokens)).run(sink)

    assert end.reason == "fault"
    assert isinstance(end.error, MalformedToken)
    assert len(sink.frames) == 1


def test_run_max_events():
    tokens = []
    for _ in range(5):
        tokens += geb_words([vfat_words()])
    sink = FrameCollector()
    decoder = EventStreamDecoder(make_reader(tokens))
    end = decoder.run(sink, max_events=3)

    assert end.reason == "clean"
    assert end.events == 3
    assert len(sink.frames) == 3
    # the stream stays positioned at the next event
    assert isinstance(decoder.decode_next(), GEBFrame)


def test_scan_stream():
    tokens = ["0", "9", "1"] + vfat_words(scan=True, del_vt=1) + vfat_words(scan=True, del_vt=2)
    decoder = EventStreamDecoder(make_reader(tokens), data_format="scan")

    frames = list(decoder)
    assert decoder.scan_header.n_bins == 10
    assert all(isinstance(f, VFATFrame) for f in frames)
    assert [f.del_vt for f in frames] == [1.0, 2.0]


def test_scan_header_read_once():
    decoder = EventStreamDecoder(make_reader(["0", "9", "1"]), data_format="scan")
    decoder.read_scan_header()
    with pytest.raises(ValueError):
        decoder.read_scan_header()
    assert decoder.decode_next() is None


def test_bad_scan_header_stops_stream():
    tokens = ["0", "9", "2"] + vfat_words(scan=True)
    decoder = EventStreamDecoder(make_reader(tokens), data_format="scan")
    with pytest.raises(MalformedHeader):
        decoder.decode_next()
    with pytest.raises(StreamFault):
        decoder.decode_next()


def test_bad_scan_header_run():
    sink = FrameCollector()
    end = EventStreamDecoder(make_reader(["0", "9", "2"]), data_format="scan").run(sink)
    assert end.reason == "fault"
    assert isinstance(end.error, MalformedHeader)


def test_gem_data_file(geb_file):
    with GemDataFile(geb_file) as data:
        frames = list(data.events())
        assert data.scan_header is None
    assert data.file.closed
    assert len(frames) == 2
    assert [v.chip_id for v in frames[0].vfats] == [0x0ab, 0xded]


def test_gem_data_file_closed_on_error(geb_file):
    with pytest.raises(RuntimeError):
        with GemDataFile(geb_file) as data:
            raise RuntimeError("stop")
    assert data.file.closed


def test_gem_data_file_scan(scan_file):
    with GemDataFile(scan_file, "scan") as data:
        assert data.scan_header.n_bins == 10
        sink = FrameCollector()
        end = data.run(sink)
    assert end.reason == "clean"
    assert len(sink.frames) == 10


def test_gem_data_file_bad_header(tmp_path):
    path = tmp_path / "bad.dat"
    path.write_text("0 9 2\n")
    with pytest.raises(MalformedHeader):
        GemDataFile(str(path), "scan")


def test_io_error_inside_event_is_truncation():
    tokens = [f"{geb_header(2):016x}"] + vfat_words()[:2]
    reader = TokenReader(FailingStream([as_text(tokens)]), name="failing")
    sink = FrameCollector()
    end = EventStreamDecoder(reader).run(sink)

    assert end.reason == "truncated"
    assert isinstance(end.error, TruncatedFrame)
    cause = end.error
    while cause.__cause__ is not None:
        cause = cause.__cause__
    assert isinstance(cause, OSError)
    assert sink.frames == []
    assert sink.end_reason == "truncated"


def test_io_error_inside_event_decode_next():
    tokens = geb_words([vfat_words()])
    reader = TokenReader(FailingStream([as_text(tokens[:-1])]), name="failing")
    with pytest.raises(TruncatedFrame):
        EventStreamDecoder(reader).decode_next()


def test_io_error_between_events_is_fault():
    reader = TokenReader(FailingStream([as_text(geb_words([vfat_words()]))]), name="failing")
    sink = FrameCollector()
    end = EventStreamDecoder(reader).run(sink)

    assert end.reason == "fault"
    assert isinstance(end.error, StreamFault)
    assert len(sink.frames) == 1


def test_stream_end_called_once_when_sink_raises():
    sink = RecordingSink(fail_on_frame=True)
    decoder = EventStreamDecoder(make_reader(geb_words([vfat_words()])))
    with pytest.raises(RuntimeError):
        decoder.run(sink)
    assert sink.ends == ["fault"]


def test_stream_end_called_once():
    tokens = geb_words([vfat_words()]) + geb_words([vfat_words()])
    sink = RecordingSink()
    EventStreamDecoder(make_reader(tokens)).run(sink)
    assert sink.frames == 2
    assert sink.ends == ["clean"]
