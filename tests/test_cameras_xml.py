from pathlib import Path

import cv2
import numpy as np
import pytest

from panotour_app.io import camera_id_from_label, load_equirectangular_image, load_tour, parse_cameras_xml
from panotour_app.io.cameras_xml import parse_transform

IDENTITY = "1 0 0 0 0 1 0 0 0 0 1 0 0 0 0 1"
TRANSLATED = "1 0 0 1 0 1 0 2 0 0 1 3 0 0 0 1"
SINGULAR = "0 0 0 0 0 0 0 0 0 0 0 0 0 0 0 1"

EXPORT = f"""<?xml version="1.0" encoding="UTF-8"?>
<document>
  <chunk>
    <cameras>
      <camera id="0" label="1_frame_7"><transform>{IDENTITY}</transform></camera>
      <camera id="1" label="1_frame_8"><transform>{TRANSLATED}</transform></camera>
      <camera id="2" label="IMG_0001"><transform>{IDENTITY}</transform></camera>
      <camera id="3" label="2_frame_9"><transform>1 2 3</transform></camera>
      <camera id="4" label="2_frame_10"/>
      <camera id="5" label="2_frame_11"><transform>{SINGULAR}</transform></camera>
    </cameras>
  </chunk>
</document>
"""


def test_camera_id_from_label():
    assert camera_id_from_label("1_frame_7") == (1, 7)
    assert camera_id_from_label("site/12_frame_0042") == (12, 42)
    assert camera_id_from_label("IMG_0001") is None
    assert camera_id_from_label("") is None


def test_parse_transform():
    assert len(parse_transform(IDENTITY)) == 16
    with pytest.raises(ValueError):
        parse_transform("1 2 3")
    with pytest.raises(ValueError):
        parse_transform(" ".join(["x"] * 16))


def test_parse_export_keeps_good_cameras_and_reports_rejects():
    records, rejected = parse_cameras_xml(EXPORT)
    assert [record.camera_id for record in records] == [7, 8, 11]
    assert records[0].group == 1
    assert records[0].xml_id == 0
    assert {reject.label for reject in rejected} == {"IMG_0001", "2_frame_9", "2_frame_10"}


def test_parse_errors(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        parse_cameras_xml(tmp_path / "missing.xml")
    with pytest.raises(ValueError):
        parse_cameras_xml("<document><camera></document>")


def test_load_tour_drops_singular_cameras(tmp_path: Path):
    (tmp_path / "cameras.xml").write_text(EXPORT, encoding="utf-8")
    tour = load_tour(tmp_path)

    assert tour.ids == (7, 8)
    identity = tour.get(7)
    assert identity.position == pytest.approx((0.0, 0.0, 0.0))
    assert identity.orientation == pytest.approx((0.0, 0.0, 0.0, 1.0))
    assert identity.image_ref == str(tmp_path.resolve() / "frames" / "1_frame_7.JPG")
    assert tour.get(8).position == pytest.approx((1.0, 3.0, -2.0))
    assert tour.model.mesh_path is None


def test_load_tour_requires_directory(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_tour(tmp_path / "nowhere")


def test_load_equirectangular_image_is_rgb(tmp_path: Path):
    bgr = np.zeros((4, 8, 3), dtype=np.uint8)
    bgr[..., 0] = 255  # blue in OpenCV order
    path = tmp_path / "pano.png"
    assert cv2.imwrite(str(path), bgr)

    image = load_equirectangular_image(path)
    assert image.shape == (4, 8, 3)
    assert image.dtype == np.uint8
    assert int(image[0, 0, 2]) == 255 and int(image[0, 0, 0]) == 0

    with pytest.raises(FileNotFoundError):
        load_equirectangular_image(tmp_path / "missing.png")
