"""Camera pose export parsing.

The export lists one ``<camera>`` element per aligned photo::

    <camera id="12" label="1_frame_7">
      <transform>r00 r01 r02 tx r10 ... 0 0 0 1</transform>
    </camera>

The label encodes ``<group>_frame_<cameraId>`` and the camera id taken from
it is the logical viewpoint id; the element's own ``id`` attribute is only
kept for diagnostics. Cameras with an unusable label or transform are
reported back as rejects instead of aborting the whole file.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
from typing import Optional, Tuple
import xml.etree.ElementTree as ET

from loguru import logger

LABEL_PATTERN = re.compile(r"(\d+)_frame_(\d+)")


@dataclass(slots=True, frozen=True)
class CameraRecord:
    """One camera as read from the export, before any conversion."""

    camera_id: int
    group: int
    label: str
    transform: Tuple[float, ...]  # 16 values, row-major
    xml_id: Optional[int] = None


@dataclass(slots=True, frozen=True)
class RejectedCamera:
    label: str
    reason: str


def camera_id_from_label(label: str) -> Optional[Tuple[int, int]]:
    """Return ``(group, camera_id)`` parsed from ``label``, or ``None``."""
    match = LABEL_PATTERN.search(label or "")
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def parse_transform(text: str) -> Tuple[float, ...]:
    """Parse 16 whitespace-separated numbers.

    Raises
    ------
    ValueError
        If the text does not hold exactly 16 numbers.
    """
    tokens = (text or "").split()
    if len(tokens) != 16:
        raise ValueError(f"expected 16 values, got {len(tokens)}")
    try:
        return tuple(float(token) for token in tokens)
    except ValueError as exc:
        raise ValueError(f"invalid number in transform: {exc}") from exc


def parse_cameras_xml(source: Path | str) -> tuple[list[CameraRecord], list[RejectedCamera]]:
    """Parse a cameras export from a path or an XML string.

    Returns
    -------
    tuple
        ``(records, rejected)`` in document order.

    Raises
    ------
    FileNotFoundError
        If ``source`` is a path that does not exist.
    ValueError
        If the document is not well-formed XML.
    """
    if isinstance(source, Path):
        if not source.exists():
            raise FileNotFoundError(f"Camera export not found: {source}")
        name = source.name
        text = source.read_text(encoding="utf-8")
    else:
        name = "<string>"
        text = source

    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ValueError(f"{name} is not valid XML: {exc}") from exc

    records: list[CameraRecord] = []
    rejected: list[RejectedCamera] = []
    elements = list(root.iter("camera"))
    logger.debug("Found {} camera elements in {}", len(elements), name)

    for element in elements:
        label = element.get("label", "")
        ids = camera_id_from_label(label)
        if ids is None:
            logger.warning("Dropping camera with invalid label format: {!r}", label)
            rejected.append(RejectedCamera(label, "label does not match <group>_frame_<id>"))
            continue
        group, camera_id = ids

        transform_element = element.find("transform")
        if transform_element is None or not (transform_element.text or "").strip():
            logger.warning("Dropping camera {} ({}): no transform", camera_id, label)
            rejected.append(RejectedCamera(label, "missing transform"))
            continue

        try:
            values = parse_transform(transform_element.text or "")
        except ValueError as exc:
            logger.warning("Dropping camera {} ({}): {}", camera_id, label, exc)
            rejected.append(RejectedCamera(label, str(exc)))
            continue

        records.append(
            CameraRecord(
                camera_id=camera_id,
                group=group,
                label=label,
                transform=values,
                xml_id=_optional_int(element.get("id")),
            )
        )
    return records, rejected


def _optional_int(raw: Optional[str]) -> Optional[int]:
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None
