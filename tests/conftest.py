"""Shared fixtures for the Inkmark test suite."""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import fitz  # noqa: E402
import pytest  # noqa: E402
from PyQt5.QtWidgets import QApplication  # noqa: E402


def _make_pdf(pages: int = 1, with_text: bool = True,
              width: float = 612, height: float = 792, rotation: int = 0) -> bytes:
    doc = fitz.open()
    for number in range(1, pages + 1):
        page = doc.new_page(width=width, height=height)
        if with_text:
            page.insert_text((72, 100), f"Hello annotated world {number}", fontsize=12)
            page.insert_text((72, 130), "Second line of text", fontsize=12)
        if rotation:
            page.set_rotation(rotation)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep settings and annotation files out of the real profile."""
    home = tmp_path / "inkmark-home"
    monkeypatch.setenv("INKMARK_HOME", str(home))
    return home


@pytest.fixture
def make_pdf():
    return _make_pdf


@pytest.fixture
def pdf_bytes() -> bytes:
    return _make_pdf(pages=2)


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    return _make_pdf(pages=1, with_text=False)
