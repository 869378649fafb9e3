# Shared pytest fixtures: in-memory workbooks with embedded images
from __future__ import annotations

import io
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook
from openpyxl.drawing.image import Image as XLImage
from openpyxl.utils import get_column_letter
from PIL import Image

from catalog_ingest.logging.init import reset_logging


def make_png(size: tuple[int, int] = (40, 30), color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def build_workbook(
    rows: Sequence[Sequence[Any]],
    images: Sequence[tuple[int, int, bytes]] = (),
    *,
    sheet_title: str = "Tabelle1",
    extra_sheets: Sequence[str] = (),
) -> bytes:
    """xlsx bytes; `images` are (row0, col0, png) anchored at that cell."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title
    for r, row in enumerate(rows, start=1):
        for c, value in enumerate(row, start=1):
            if value is not None and value != "":
                ws.cell(row=r, column=c, value=value)
    for row0, col0, data in images:
        ws.add_image(XLImage(io.BytesIO(data)), f"{get_column_letter(col0 + 1)}{row0 + 1}")
    for title in extra_sheets:
        other = wb.create_sheet(title)
        other.cell(row=1, column=1, value="PLU")
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture()
def png() -> bytes:
    return make_png()


@pytest.fixture()
def header_rows() -> list[list[Any]]:
    return [
        ["PLU", "Warentext", "Abbildung"],
        [81597, "Roggenbrot, 500g", None],
        [12345, "Croissant", None],
        [22222, "Berliner    Pfannkuchen", None],
    ]


@pytest.fixture()
def header_workbook(header_rows) -> bytes:
    """Header layout, one image per product in the Abbildung column."""
    images = [
        (1, 2, make_png(color=(255, 0, 0))),
        (2, 2, make_png(color=(0, 255, 0))),
        (3, 2, make_png(color=(0, 0, 255))),
    ]
    return build_workbook(header_rows, images)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """layout:
  code_length: 5
  band_min_spacing: 3
images:
  resize_target: 96
matching:
  row_drift: [1, 2]
  column_window: 40
upload:
  concurrency: 4
  bucket_prefix: backshop-images
logs_directory: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "ingest.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()
