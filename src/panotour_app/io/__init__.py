"""Input helpers for tour exports and panorama frames."""

from .cameras_xml import CameraRecord, RejectedCamera, camera_id_from_label, parse_cameras_xml
from .loader import image_ref_for, load_equirectangular_image, load_tour

__all__ = [
    "CameraRecord",
    "RejectedCamera",
    "camera_id_from_label",
    "image_ref_for",
    "load_equirectangular_image",
    "load_tour",
    "parse_cameras_xml",
]
