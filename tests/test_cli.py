from pathlib import Path

import cv2
import pytest

from stitchbox import cli

from helpers import crop, leftover_files


@pytest.fixture
def config_file(tmp_path, work_root):
    path = tmp_path / "config.yaml"
    path.write_text(f"workspace: {{work_root: {work_root}}}\n")
    return path


def test_stitches_overlapping_photos(capsys, config_file, write_image, overlapping_pair, output_dir, work_root):
    paths = [str(write_image(frame)) for frame in overlapping_pair]

    code = cli.main(paths + [
        "--engine", "feature",
        "--output-dir", str(output_dir),
        "--config", str(config_file),
        "--log-level", "warning",
    ])

    assert code == 0
    location = Path(capsys.readouterr().out.strip())
    assert location.parent == output_dir
    assert cv2.imread(str(location)).shape[1] > 640
    assert leftover_files(work_root) == []


def test_single_photo_scan_reports_error(capsys, config_file, write_image, scene, output_dir):
    code = cli.main([
        str(write_image(crop(scene, 0))),
        "--mode", "scans",
        "--output-dir", str(output_dir),
        "--config", str(config_file),
    ])

    assert code == 1
    assert capsys.readouterr().out.strip() == "need_more_images: Can't stitch images: ERR_NEED_MORE_IMGS"


def test_bad_config_exits_with_usage_error(capsys, tmp_path, write_image, scene):
    bad = tmp_path / "bad.yaml"
    bad.write_text("unknown_key: 1\n")

    assert cli.main([str(write_image(crop(scene, 0))), "--config", str(bad)]) == 2


def test_parser_rejects_unknown_mode():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["a.png", "--mode", "sphere"])
