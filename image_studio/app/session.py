from __future__ import annotations

from dataclasses import replace
from typing import Any

from PySide6.QtCore import QObject, Signal

from image_studio import geometry
from image_studio.errors import ExportError, InvalidDimensionInput
from image_studio.logger import get_logger
from image_studio.models import EditState, ExportResult, ExportSettings, ImageSource, ViewTransform
from image_studio.ops import export_inputs
from image_studio.ops.crop_controller import CropResolver, DragPhase
from image_studio.ops.history import EditHistory
from image_studio.render.compose import export_image
from image_studio.settings_manager import SettingsManager

_logger = get_logger("session")

MIN_USER_SCALE = 0.5
MAX_USER_SCALE = 3.0
SIDEBAR_WIDTH = 320.0
ROTATION_STEP = 90.0


def _clamp_user_scale(value: float) -> float:
    return max(MIN_USER_SCALE, min(MAX_USER_SCALE, float(value)))


class EditorSession(QObject):
    """Owns the active image and its EditState/ExportSettings pair.

    Design:
    - State objects are immutable values; every change replaces the value and
      emits the matching signal only when the value actually changed.
    - Pointer-move events are resolved synchronously against the current view
      transform. Switching images discards any in-flight drag.
    - Export failures are reported through `exportFailed`, never raised.
    """

    imageChanged = Signal(object)
    editStateChanged = Signal(object)
    exportSettingsChanged = Signal(object)
    viewTransformChanged = Signal(object)
    historyChanged = Signal(bool, bool)  # can_undo, can_redo
    exportFinished = Signal(object)  # ExportResult
    exportFailed = Signal(str)

    def __init__(self, settings: SettingsManager | None = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._settings = settings
        self._source: ImageSource | None = None
        self._edit = EditState()
        self._export = settings.default_export_settings() if settings is not None else ExportSettings()
        self._view = ViewTransform()
        self._viewport = (0.0, 0.0)
        self._sidebar_visible = True
        self._resolver = CropResolver()
        self._history = EditHistory()
        self._touch_count = 0
        self._pan_anchor: tuple[float, float, float, float] | None = None
        self._drag_changed = False

    # ---- read-only state ----
    @property
    def source(self) -> ImageSource | None:
        return self._source

    @property
    def edit_state(self) -> EditState:
        return self._edit

    @property
    def export_settings(self) -> ExportSettings:
        return self._export

    @property
    def view_transform(self) -> ViewTransform:
        return self._view

    @property
    def drag_phase(self) -> DragPhase:
        return self._resolver.phase

    @property
    def history(self) -> EditHistory:
        return self._history

    def handle_compensation(self) -> tuple[float, float]:
        return geometry.handle_compensation(self._view)

    def _setting_float(self, key: str) -> float:
        if self._settings is not None:
            return self._settings.get_float(key)
        return float(SettingsManager.DEFAULTS[key])

    # ---- internal mutation helpers ----
    def _set_edit(self, state: EditState, *, record: bool = False) -> None:
        if state == self._edit:
            return
        old = self._edit
        self._edit = state
        self.editStateChanged.emit(state)
        if record:
            self._history.push(state)
            self._emit_history()
        if (old.rotation_deg, old.flip_x, old.flip_y, old.scale) != (
            state.rotation_deg,
            state.flip_x,
            state.flip_y,
            state.scale,
        ):
            self._sync_view()

    def _set_export(self, settings: ExportSettings) -> None:
        if settings == self._export:
            return
        self._export = settings
        self.exportSettingsChanged.emit(settings)

    def _set_view(self, view: ViewTransform) -> None:
        if view == self._view:
            return
        self._view = view
        self.viewTransformChanged.emit(view)

    def _emit_history(self) -> None:
        self.historyChanged.emit(self._history.can_undo(), self._history.can_redo())

    def _sync_view(self) -> None:
        """Recompute the view transform from viewport, sidebar and edit state."""
        fit = geometry.fit_scale(
            self._available_width(),
            self._viewport[1],
            self._source.width if self._source else 0,
            self._source.height if self._source else 0,
            self._edit.rotation_deg,
            padding=self._setting_float("view_padding"),
        )
        self._set_view(
            replace(
                self._view,
                fit_scale=fit,
                user_scale=self._edit.scale,
                rotation_deg=self._edit.rotation_deg,
                flip_x=self._edit.flip_x,
                flip_y=self._edit.flip_y,
            )
        )

    def _available_width(self) -> float:
        w = self._viewport[0]
        return w - SIDEBAR_WIDTH if self._sidebar_visible else w

    # ---- image lifecycle ----
    def set_image(self, source: ImageSource | None) -> None:
        """Activate `source`. This is a full state replacement, not a merge."""
        self._resolver.cancel()
        self._pan_anchor = None
        self._source = source
        self.imageChanged.emit(source)
        if source is None:
            self._set_edit(EditState())
            self._history = EditHistory()
            self._emit_history()
            return

        _logger.debug("activate image %s %dx%d", source.name, source.width, source.height)
        state = EditState.for_image(source.width, source.height)
        self._history.reset(state)
        self._set_edit(state)
        self._set_export(self._export.for_new_image())
        self._set_view(replace(ViewTransform(), fit_scale=self._view.fit_scale))
        self._sync_view()
        self._emit_history()

    def reset(self) -> None:
        """Restore the pristine edit state and default export settings for the active image."""
        if self._source is None:
            return
        self._resolver.cancel()
        self._set_edit(EditState.for_image(self._source.width, self._source.height), record=True)
        defaults = self._settings.default_export_settings() if self._settings is not None else ExportSettings()
        self._set_export(defaults)

    # ---- viewport ----
    def set_viewport(self, width: float, height: float) -> None:
        self._viewport = (float(width), float(height))
        self._sync_view()

    def set_sidebar_visible(self, visible: bool) -> None:
        self._sidebar_visible = bool(visible)
        self._sync_view()

    # ---- edit commands ----
    def rotate_by(self, delta_deg: float = ROTATION_STEP) -> None:
        rotation = geometry.normalize_rotation(self._edit.rotation_deg + delta_deg)
        self._set_edit(replace(self._edit, rotation_deg=rotation), record=True)

    def set_rotation(self, rotation_deg: float) -> None:
        rotation = geometry.normalize_rotation(rotation_deg)
        self._set_edit(replace(self._edit, rotation_deg=rotation), record=True)

    def toggle_flip_x(self) -> None:
        self._set_edit(replace(self._edit, flip_x=not self._edit.flip_x), record=True)

    def toggle_flip_y(self) -> None:
        self._set_edit(replace(self._edit, flip_y=not self._edit.flip_y), record=True)

    def set_cropping(self, enabled: bool) -> None:
        if not enabled:
            self._resolver.cancel()
        state = replace(self._edit, is_cropping=bool(enabled))
        if state.crop_rect is None and self._source is not None:
            state = replace(state, crop_rect=EditState.for_image(self._source.width, self._source.height).crop_rect)
        self._set_edit(state, record=True)

    def set_crop_aspect_locked(self, locked: bool) -> None:
        self._set_edit(replace(self._edit, crop_aspect_locked=bool(locked)), record=True)

    def undo(self) -> None:
        state = self._history.undo()
        if state is not None:
            self._resolver.cancel()
            self._set_edit(state)
            self._emit_history()

    def redo(self) -> None:
        state = self._history.redo()
        if state is not None:
            self._resolver.cancel()
            self._set_edit(state)
            self._emit_history()

    # ---- crop pointer interaction ----
    def on_pointer_down(self, handle: str, screen_x: float, screen_y: float) -> bool:
        """Start a crop drag on `handle`. Returns False when cropping is inactive."""
        if self._source is None or self._touch_count > 1:
            return False
        self._drag_changed = False
        started = self._resolver.begin(handle, screen_x, screen_y, self._edit.crop_rect, self._edit.is_cropping)
        if started:
            _logger.debug("drag start: handle=%s at (%.1f, %.1f)", handle, screen_x, screen_y)
        return started

    def on_pointer_move(self, screen_x: float, screen_y: float) -> None:
        if self._source is None or self._edit.crop_rect is None:
            return
        if self._resolver.phase is not DragPhase.DRAGGING:
            return
        rect = self._resolver.move(
            screen_x,
            screen_y,
            view=self._view,
            image_size=(self._source.width, self._source.height),
            aspect_locked=self._edit.crop_aspect_locked,
            current=self._edit.crop_rect,
        )
        if rect != self._edit.crop_rect:
            self._drag_changed = True
            self._set_edit(replace(self._edit, crop_rect=rect))

    def on_pointer_up(self) -> None:
        self._end_drag()

    def on_pointer_leave(self) -> None:
        self._end_drag()

    def on_touch_count_changed(self, count: int) -> None:
        """A second touch point ends any crop drag and suspends panning."""
        self._touch_count = int(count)
        if self._touch_count > 1:
            self._end_drag()
            self._pan_anchor = None

    def _end_drag(self) -> None:
        if self._resolver.phase is not DragPhase.DRAGGING:
            return
        self._resolver.cancel()
        if self._drag_changed:
            # Commit the last applied rect as one undo step.
            self._history.push(self._edit)
            self._emit_history()
        self._drag_changed = False
        _logger.debug("drag end: rect=%s", self._edit.crop_rect)

    # ---- zoom & pan (view only) ----
    def on_wheel(self, delta_sign: float) -> None:
        if not delta_sign:
            return
        key = "wheel_zoom_in" if delta_sign > 0 else "wheel_zoom_out"
        self.set_user_scale(self._edit.scale * self._setting_float(key))

    def on_pinch(self, scale_ratio: float) -> None:
        if scale_ratio <= 0:
            return
        self.set_user_scale(self._edit.scale * float(scale_ratio))

    def set_user_scale(self, value: float) -> None:
        self._set_edit(replace(self._edit, scale=_clamp_user_scale(value)))

    def on_pan_start(self, screen_x: float, screen_y: float) -> None:
        if self._touch_count > 1:
            return
        self._pan_anchor = (float(screen_x), float(screen_y), self._view.pan_x, self._view.pan_y)

    def on_pan_move(self, screen_x: float, screen_y: float) -> None:
        if self._pan_anchor is None or self._touch_count > 1:
            return
        sx, sy, px, py = self._pan_anchor
        self._set_view(replace(self._view, pan_x=px + (screen_x - sx), pan_y=py + (screen_y - sy)))

    def on_pan_end(self) -> None:
        self._pan_anchor = None

    # ---- export settings ----
    def update_export_settings(self, **changes: Any) -> None:
        self._set_export(replace(self._export, **changes))

    def _crop_size(self) -> tuple[float, float]:
        if self._edit.crop_rect is not None:
            return self._edit.crop_rect.width, self._edit.crop_rect.height
        if self._source is not None:
            return float(self._source.width), float(self._source.height)
        return 0.0, 0.0

    def set_dimension_text(self, key: str, text: str) -> None:
        """Apply a width/height text field. Malformed input is ignored."""
        try:
            value = export_inputs.parse_dimension_text(text)
        except InvalidDimensionInput as e:
            _logger.debug("%s ignored: %s", key, e)
            return
        crop_w, crop_h = self._crop_size()
        self._set_export(export_inputs.apply_dimension_input(self._export, key, value, crop_w, crop_h))

    def _max_target_mb(self) -> float:
        return export_inputs.max_target_mb(self._source.byte_size if self._source else 0)

    def set_target_size_slider(self, value: float) -> None:
        mb = export_inputs.slider_to_mb(value, self._max_target_mb())
        size = None if mb is None else int(mb * export_inputs.BYTES_PER_MB)
        self._set_export(replace(self._export, target_size_bytes=size))

    def target_size_slider_value(self) -> float:
        size = self._export.target_size_bytes
        mb = size / export_inputs.BYTES_PER_MB if size else None
        return export_inputs.mb_to_slider(mb, self._max_target_mb())

    def set_target_size_text(self, text: str, unit: str) -> None:
        size = export_inputs.parse_target_size_text(text, unit, self._max_target_mb(), self._export.target_size_bytes)
        self._set_export(replace(self._export, target_size_bytes=size))

    # ---- export ----
    def request_export(self) -> ExportResult | None:
        """Compose and encode the active image. Failures emit exportFailed and return None."""
        if self._source is None:
            self.exportFailed.emit("No image is active.")
            return None
        try:
            result = export_image(self._source, self._edit, self._export)
        except ExportError as e:
            _logger.error("export failed: %s", e, exc_info=True)
            self.exportFailed.emit(str(e))
            return None
        self.exportFinished.emit(result)
        return result
