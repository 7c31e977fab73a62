"""Pytest configuration.

`EditorSession` is a QObject and pytest-qt's `qtbot` needs an application
instance. We create a single `QApplication` for the entire session as early as
possible (offscreen, so no display is required) and cleanly shut it down at
the end.
"""

from __future__ import annotations

import os
from typing import Any

import numpy as np
import pytest

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""

    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

    # Import lazily so non-Qt environments can still import this conftest.
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    global _APP

    app = QApplication.instance()
    if app is None:
        # Keep a strong ref so it isn't GC'd mid-session.
        _APP = QApplication([])
    else:
        _APP = app


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    """Attempt a clean Qt shutdown to avoid lingering threads at interpreter exit."""

    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    app = QApplication.instance()
    if app is None:
        return

    app.quit()
    app.processEvents()


@pytest.fixture
def split_pixels():
    """Factory for (h, w, 3) arrays: left half red, right half blue."""

    def _make(width: int = 40, height: int = 20) -> np.ndarray:
        arr = np.zeros((height, width, 3), dtype=np.uint8)
        arr[:, : width // 2] = (255, 0, 0)
        arr[:, width // 2 :] = (0, 0, 255)
        return arr

    return _make
