import os
import sys
import time
from io import BytesIO
from pathlib import Path
from typing import Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

# Allow running the suite from a checkout without installing the package.
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(scope="session")
def qapp():
    pytest.importorskip("PySide6.QtWidgets", reason="Qt widgets not available", exc_type=ImportError)
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def wait_until(qapp) -> Callable[..., bool]:
    """Return a helper that pumps the Qt event loop until *predicate* holds."""

    def _wait(predicate: Callable[[], bool], timeout: float = 4.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            qapp.processEvents()
            if predicate():
                return True
            time.sleep(0.01)
        qapp.processEvents()
        return predicate()

    return _wait


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    """Return a factory producing encoded test images via Pillow."""

    from PIL import Image

    def _make(width: int = 64, height: int = 32, fmt: str = "PNG", color: str = "red") -> bytes:
        buffer = BytesIO()
        Image.new("RGB", (width, height), color=color).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make
