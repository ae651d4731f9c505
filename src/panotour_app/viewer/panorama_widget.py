"""OpenGL-powered panorama viewer widget."""
from __future__ import annotations

import math
from typing import Optional

import numpy as np
from loguru import logger
from OpenGL.GL import (
    GL_BLEND,
    GL_COLOR_BUFFER_BIT,
    GL_DEPTH_BUFFER_BIT,
    GL_LINEAR,
    GL_MODELVIEW,
    GL_MODULATE,
    GL_ONE_MINUS_SRC_ALPHA,
    GL_PROJECTION,
    GL_RGB,
    GL_SRC_ALPHA,
    GL_TEXTURE_2D,
    GL_TEXTURE_ENV,
    GL_TEXTURE_ENV_MODE,
    GL_TEXTURE_MAG_FILTER,
    GL_TEXTURE_MIN_FILTER,
    GL_TRIANGLE_STRIP,
    GL_UNPACK_ALIGNMENT,
    GL_UNSIGNED_BYTE,
    glBegin,
    glBindTexture,
    glBlendFunc,
    glClear,
    glClearColor,
    glColor4f,
    glDeleteTextures,
    glDisable,
    glEnable,
    glEnd,
    glGenTextures,
    glLoadIdentity,
    glMatrixMode,
    glPixelStorei,
    glTexCoord2f,
    glTexEnvi,
    glTexImage2D,
    glTexParameteri,
    glVertex3f,
    glViewport,
)
from OpenGL.GLU import gluLookAt, gluPerspective
from PyQt6.QtCore import QPointF, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QColor, QKeyEvent, QMouseEvent, QPainter, QPen, QWheelEvent
from PyQt6.QtOpenGLWidgets import QOpenGLWidget

from ..math.geometry import look_vector
from ..ui.theme import HOTSPOT_COLOR, HOTSPOT_HOVER_COLOR, OVERLAY_TEXT_COLOR
from .hotspots import PanoramaHotspot
from .navigator import TourNavigator

FRAME_INTERVAL_MS = 16
DRAG_THRESHOLD_PX = 6


class PanoramaWidget(QOpenGLWidget):
    """Inside-out textured sphere with neighbour hotspots.

    The widget owns nothing but GL state: the look direction, zoom, overlay
    opacity and hotspot placement all come from the :class:`TourNavigator`
    once per frame.
    """

    escapeRequested = pyqtSignal()
    hotspotActivated = pyqtSignal(int)

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMouseTracking(True)

        self._navigator: Optional[TourNavigator] = None
        self._image: Optional[np.ndarray] = None
        self._texture_id: Optional[int] = None
        self._pending_upload = False
        self._sphere_lon_segments = 128
        self._sphere_lat_segments = 64

        self._hotspots: list[PanoramaHotspot] = []
        self._hovered_id: Optional[int] = None

        self._press_pos = QPointF()
        self._last_pos = QPointF()
        self._pressed = False
        self._dragging = False

        self._frame_timer = QTimer(self)
        self._frame_timer.setInterval(FRAME_INTERVAL_MS)
        self._frame_timer.timeout.connect(self._on_frame)

    # ------------------------------------------------------------------
    def set_navigator(self, navigator: TourNavigator) -> None:
        self._navigator = navigator
        navigator.add_switch_listener(self._on_viewpoint_switched)

    def start(self) -> None:
        """Begin the frame loop for the navigator's active viewpoint."""
        self._on_viewpoint_switched(self._navigator.current_id if self._navigator else None)
        if not self._frame_timer.isActive():
            self._frame_timer.start()

    def stop(self) -> None:
        """Halt the frame loop and release the panorama texture."""
        self._frame_timer.stop()
        self._hotspots = []
        self._hovered_id = None
        self._image = None
        self.makeCurrent()
        self._delete_texture()
        self.doneCurrent()
        self.update()

    def set_panorama(self, image: np.ndarray) -> None:
        if image.dtype != np.uint8:
            raise ValueError("Panorama image must be uint8 RGB data")
        if image.ndim != 3 or image.shape[2] != 3:
            raise ValueError("Panorama image must be an RGB image")
        self._image = np.ascontiguousarray(image)
        self._pending_upload = True
        self.update()

    # ------------------------------------------------------------------
    def initializeGL(self) -> None:  # noqa: N802
        glClearColor(0.03, 0.04, 0.06, 1.0)

    def resizeGL(self, width: int, height: int) -> None:  # noqa: N802
        glViewport(0, 0, width, height)

    def paintGL(self) -> None:  # noqa: N802
        glClear(GL_COLOR_BUFFER_BIT | GL_DEPTH_BUFFER_BIT)
        orientation = self._navigator.orientation if self._navigator else None
        if orientation is None or self._image is None:
            return

        glMatrixMode(GL_PROJECTION)
        glLoadIdentity()
        aspect = max(1e-3, self.width() / max(1, self.height()))
        gluPerspective(orientation.field_of_view, aspect, 0.01, 10.0)

        glMatrixMode(GL_MODELVIEW)
        glLoadIdentity()
        dir_x, dir_y, dir_z = orientation.look_direction()
        gluLookAt(0.0, 0.0, 0.0, dir_x, dir_y, dir_z, 0.0, 1.0, 0.0)

        if self._pending_upload:
            self._upload_texture()

        glEnable(GL_BLEND)
        glBlendFunc(GL_SRC_ALPHA, GL_ONE_MINUS_SRC_ALPHA)
        glEnable(GL_TEXTURE_2D)
        glTexEnvi(GL_TEXTURE_ENV, GL_TEXTURE_ENV_MODE, GL_MODULATE)
        glBindTexture(GL_TEXTURE_2D, self._texture_id or 0)
        glColor4f(1.0, 1.0, 1.0, self._navigator.overlay_opacity)
        self._draw_textured_sphere(radius=1.0)
        glBindTexture(GL_TEXTURE_2D, 0)
        glDisable(GL_TEXTURE_2D)
        glDisable(GL_BLEND)

    def paintEvent(self, event):  # noqa: N802
        super().paintEvent(event)
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        self._draw_hotspots(painter)
        self._draw_status(painter)
        painter.end()

    # ------------------------------------------------------------------
    def mousePressEvent(self, event: QMouseEvent) -> None:  # noqa: N802
        if event.button() == Qt.MouseButton.LeftButton:
            self._press_pos = event.position()
            self._last_pos = event.position()
            self._pressed = True
            self._dragging = False
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:  # noqa: N802
        pos = event.position()
        if self._pressed and event.buttons() & Qt.MouseButton.LeftButton:
            if not self._dragging and (pos - self._press_pos).manhattanLength() >= DRAG_THRESHOLD_PX:
                self._dragging = True
            if self._dragging and self._navigator is not None:
                delta = pos - self._last_pos
                self._navigator.rotate(float(delta.x()), float(delta.y()))
                self.update()
        else:
            self._update_hover(pos)
        self._last_pos = pos
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:  # noqa: N802
        if event.button() == Qt.MouseButton.LeftButton:
            was_click = self._pressed and not self._dragging
            self._end_drag()
            if was_click:
                hit = self._hotspot_at(event.position())
                if hit is not None and self._navigator is not None:
                    logger.debug("Hotspot {} clicked", hit.viewpoint_id)
                    if self._navigator.activate_hotspot(hit.viewpoint_id):
                        self.hotspotActivated.emit(hit.viewpoint_id)
        super().mouseReleaseEvent(event)

    def leaveEvent(self, event) -> None:  # noqa: N802
        self._end_drag()
        self._hovered_id = None
        super().leaveEvent(event)

    def wheelEvent(self, event: QWheelEvent) -> None:  # noqa: N802
        if self._navigator is not None and self._navigator.zoom_wheel(float(event.angleDelta().y()) * -1.0):
            self.update()
        event.accept()

    def keyPressEvent(self, event: QKeyEvent) -> None:  # noqa: N802
        key = event.key()
        if key == Qt.Key.Key_Escape:
            self.escapeRequested.emit()
            event.accept()
        elif key == Qt.Key.Key_R and self._navigator is not None and self._navigator.error:
            self._navigator.retry()
            event.accept()
        else:
            super().keyPressEvent(event)

    def closeEvent(self, event) -> None:  # noqa: N802
        self.stop()
        super().closeEvent(event)

    # ------------------------------------------------------------------
    def _on_frame(self) -> None:
        if self._navigator is None:
            return
        self._hotspots = self._navigator.frame()
        self.update()

    def _on_viewpoint_switched(self, viewpoint_id: Optional[int]) -> None:
        session = self._navigator.session if self._navigator else None
        if session is None or session.image is None:
            self._image = None
            return
        self.set_panorama(session.image)
        logger.debug("Panorama widget now showing viewpoint {}", viewpoint_id)

    def _end_drag(self) -> None:
        self._pressed = False
        self._dragging = False
        self.setCursor(Qt.CursorShape.OpenHandCursor)

    def _update_hover(self, pos: QPointF) -> None:
        hit = self._hotspot_at(pos)
        hovered = hit.viewpoint_id if hit is not None else None
        if hovered != self._hovered_id:
            self._hovered_id = hovered
            self.setCursor(
                Qt.CursorShape.PointingHandCursor if hovered is not None else Qt.CursorShape.OpenHandCursor
            )
            self.update()

    def _hotspot_at(self, pos: QPointF) -> Optional[PanoramaHotspot]:
        best: Optional[PanoramaHotspot] = None
        best_distance = math.inf
        for hotspot in self._hotspots:
            if not hotspot.visible:
                continue
            point = self._screen_from_angles(hotspot.yaw, hotspot.pitch)
            if point is None:
                continue
            distance = math.hypot(point.x() - pos.x(), point.y() - pos.y())
            if distance <= hotspot.size / 2.0 and distance < best_distance:
                best, best_distance = hotspot, distance
        return best

    def _screen_from_angles(self, yaw: float, pitch: float) -> Optional[QPointF]:
        """Project a panorama direction into current viewport coordinates."""
        orientation = self._navigator.orientation if self._navigator else None
        if orientation is None:
            return None
        width = max(1.0, float(self.width()))
        height = max(1.0, float(self.height()))
        aspect = width / height
        fov_y = math.radians(orientation.field_of_view)

        direction = look_vector(yaw, pitch)
        forward = orientation.look_direction()
        right = np.cross(forward, np.array([0.0, 1.0, 0.0]))
        right_norm = float(np.linalg.norm(right))
        if right_norm <= 1e-9:
            return None
        right /= right_norm
        up = np.cross(right, forward)

        z_forward = float(np.dot(direction, forward))
        if z_forward <= 1e-6:
            return None
        tan_half_y = math.tan(fov_y / 2.0)
        tan_half_x = tan_half_y * aspect
        x_ndc = float(np.dot(direction, right)) / (z_forward * tan_half_x)
        y_ndc = float(np.dot(direction, up)) / (z_forward * tan_half_y)
        if abs(x_ndc) > 1.0 or abs(y_ndc) > 1.0:
            return None
        return QPointF(((x_ndc + 1.0) * 0.5) * width, ((1.0 - y_ndc) * 0.5) * height)

    def _draw_hotspots(self, painter: QPainter) -> None:
        for hotspot in self._hotspots:
            if not hotspot.visible:
                continue
            point = self._screen_from_angles(hotspot.yaw, hotspot.pitch)
            if point is None:
                continue
            color = QColor(HOTSPOT_HOVER_COLOR if hotspot.viewpoint_id == self._hovered_id else HOTSPOT_COLOR)
            color.setAlphaF(hotspot.opacity * self._navigator.overlay_opacity)
            radius = hotspot.size / 2.0
            painter.setPen(QPen(color, 2))
            painter.setBrush(color)
            painter.drawEllipse(point, radius, radius)
            painter.setPen(OVERLAY_TEXT_COLOR)
            painter.drawText(int(point.x() + radius + 4), int(point.y() - radius), hotspot.label)

    def _draw_status(self, painter: QPainter) -> None:
        navigator = self._navigator
        if navigator is None:
            return
        painter.setPen(OVERLAY_TEXT_COLOR)
        if navigator.error:
            painter.drawText(16, 28, f"{navigator.error}  (R to retry, Esc to return)")
            return
        if navigator.orientation is not None and navigator.current_id is not None:
            snapshot = navigator.orientation.snapshot()
            painter.drawText(
                16,
                self.height() - 16,
                f"Viewpoint {navigator.current_id} | Yaw {snapshot.yaw % 360.0:05.1f} deg | "
                f"Pitch {snapshot.pitch:+05.1f} deg | FOV {snapshot.field_of_view:04.1f} deg | Esc: overview",
            )

    def _upload_texture(self) -> None:
        if self._image is None:
            return
        image = self._image
        height, width, _ = image.shape
        texture_id = self._texture_id or glGenTextures(1)
        glBindTexture(GL_TEXTURE_2D, texture_id)
        glPixelStorei(GL_UNPACK_ALIGNMENT, 1)
        glTexParameteri(GL_TEXTURE_2D, GL_TEXTURE_MIN_FILTER, GL_LINEAR)
        glTexParameteri(GL_TEXTURE_2D, GL_TEXTURE_MAG_FILTER, GL_LINEAR)
        glTexImage2D(GL_TEXTURE_2D, 0, GL_RGB, width, height, 0, GL_RGB, GL_UNSIGNED_BYTE, image)
        glBindTexture(GL_TEXTURE_2D, 0)
        self._texture_id = texture_id
        self._pending_upload = False

    def _delete_texture(self) -> None:
        if self._texture_id is not None:
            glDeleteTextures([self._texture_id])
            self._texture_id = None

    def _draw_textured_sphere(self, radius: float) -> None:
        """Render a Y-up sphere with equirectangular texture coordinates.

        Texture ``u`` follows yaw (``u = 0`` at yaw 0, increasing to the
        right) and ``v = 0`` is the zenith, matching :func:`look_vector`.
        """
        lon_steps = self._sphere_lon_segments
        lat_steps = self._sphere_lat_segments

        for lat_idx in range(lat_steps):
            v0 = lat_idx / lat_steps
            v1 = (lat_idx + 1) / lat_steps
            phi0 = (math.pi / 2.0) - (v0 * math.pi)
            phi1 = (math.pi / 2.0) - (v1 * math.pi)
            cos_phi0 = math.cos(phi0)
            cos_phi1 = math.cos(phi1)
            sin_phi0 = math.sin(phi0)
            sin_phi1 = math.sin(phi1)

            glBegin(GL_TRIANGLE_STRIP)
            for lon_idx in range(lon_steps + 1):
                u = lon_idx / lon_steps
                theta = u * (2.0 * math.pi)
                cos_theta = math.cos(theta)
                sin_theta = math.sin(theta)

                glTexCoord2f(u, v1)
                glVertex3f(radius * cos_phi1 * cos_theta, radius * sin_phi1, radius * cos_phi1 * sin_theta)
                glTexCoord2f(u, v0)
                glVertex3f(radius * cos_phi0 * cos_theta, radius * sin_phi0, radius * cos_phi0 * sin_theta)
            glEnd()
