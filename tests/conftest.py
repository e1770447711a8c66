import pytest

from helpers import as_text, geb_words, vfat_words


@pytest.fixture
def geb_file(tmp_path):
    """
    Board data file with two GEB events of two VFAT2 frames each.
    """
    tokens = []
    for event in range(2):
        tokens += geb_words([
            vfat_words(bc=event, ec=event, chip_id=0x0ab, ls_data=1 << 63),
            vfat_words(bc=event, ec=event, chip_id=0xded, ms_data=0x1),
        ])
    path = tmp_path / "gem_geb.dat"
    path.write_text(as_text(tokens))
    return str(path)


@pytest.fixture
def scan_file(tmp_path):
    """
    Threshold scan file: header 0 9 1, then one frame per threshold value
    where channel 5 fires below threshold 5.
    """
    tokens = ["0", "9", "1"]
    for threshold in range(10):
        hits = 1 << 5 if threshold < 5 else 0
        tokens += vfat_words(scan=True, ls_data=hits, del_vt=threshold)
    path = tmp_path / "ThresholdScan.dat"
    path.write_text(as_text(tokens))
    return str(path)
