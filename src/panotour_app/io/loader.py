"""File loading for tours and panorama frames."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import cv2
import numpy as np
from loguru import logger

from .cameras_xml import parse_cameras_xml
from ..models.camera_pose import CameraPose
from ..models.tour import ModelAsset, Tour, build_tour

CAMERAS_FILE = "cameras.xml"
FRAMES_DIR = "frames"
MODEL_FILE = "model.glb"
TEXTURE_FILE = "texture.jpg"
DEFAULT_IMAGE_EXT = "JPG"


def image_ref_for(label: str, frames_dir: Path, ext: str = DEFAULT_IMAGE_EXT) -> str:
    """Panorama image path for a camera label."""
    return str(frames_dir / f"{label}.{ext}")


def load_equirectangular_image(path: Path | str) -> np.ndarray:
    """Load an equirectangular panorama as an RGB uint8 array."""
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise FileNotFoundError(f"Unable to read panorama image: {path}")
    image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    logger.debug("Loaded panorama image {} with shape {}", path, image.shape)
    return image


def load_tour(
    data_dir: Path,
    *,
    cameras_file: str = CAMERAS_FILE,
    frames_dir: Optional[Path] = None,
    image_ext: str = DEFAULT_IMAGE_EXT,
) -> Tour:
    """Build a :class:`Tour` from a tour directory.

    Expected layout::

        data_dir/
          cameras.xml
          frames/<label>.JPG
          model.glb
          texture.jpg

    Cameras with an unusable label or transform are dropped with a warning;
    the rest of the tour still loads.
    """
    root = data_dir.expanduser().resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Tour directory does not exist: {root}")
    frames = frames_dir or (root / FRAMES_DIR)

    records, rejected = parse_cameras_xml(root / cameras_file)

    poses: list[CameraPose] = []
    for record in records:
        pose = CameraPose.from_transform(
            record.camera_id,
            record.label,
            record.transform,
            image_ref=image_ref_for(record.label, frames, image_ext),
        )
        if pose is None:
            logger.warning(
                "Dropping camera {} ({}): non-finite or singular transform", record.camera_id, record.label
            )
            continue
        poses.append(pose)

    mesh = root / MODEL_FILE
    texture = root / TEXTURE_FILE
    model = ModelAsset(
        mesh_path=mesh if mesh.exists() else None,
        texture_path=texture if texture.exists() else None,
    )
    if model.mesh_path is None:
        logger.warning("No model mesh found in {}", root)

    logger.info(
        "Loaded tour from {}: {} cameras, {} dropped at parse, {} dropped at conversion",
        root,
        len(poses),
        len(rejected),
        len(records) - len(poses),
    )
    return build_tour(poses, model)
