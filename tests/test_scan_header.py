import pytest

from helpers import make_reader
from pyvfat.errors import MalformedHeader, MalformedToken, TruncatedFrame
from pyvfat.scan_header import ScanHeader


def test_uneven_bins_rejected():
    # 10 threshold values cannot be split into steps of 2
    with pytest.raises(MalformedHeader):
        ScanHeader(0, 9, 2)


def test_unit_step():
    header = ScanHeader(0, 9, 1)
    assert header.n_bins == 10
    assert header.range == (-0.5, 9.5)


def test_even_steps():
    assert ScanHeader(-10, 9, 4).n_bins == 5


@pytest.mark.parametrize("step_size", [0, -1])
def test_non_positive_step(step_size):
    with pytest.raises(MalformedHeader):
        ScanHeader(0, 9, step_size)


def test_inverted_range():
    with pytest.raises(MalformedHeader):
        ScanHeader(10, 0, 1)


def test_from_reader():
    reader = make_reader(["0", "9", "1", "a000"])
    header = ScanHeader.from_reader(reader)
    assert (header.min_th, header.max_th, header.step_size) == (0, 9, 1)
    assert reader.tokens_read == 3


def test_from_reader_malformed():
    with pytest.raises(MalformedHeader):
        ScanHeader.from_reader(make_reader(["0", "9", "2"]))


def test_from_reader_truncated():
    with pytest.raises(TruncatedFrame):
        ScanHeader.from_reader(make_reader(["0", "9"]))


def test_from_reader_hex_token():
    with pytest.raises(MalformedToken):
        ScanHeader.from_reader(make_reader(["0", "ff", "1"]))
