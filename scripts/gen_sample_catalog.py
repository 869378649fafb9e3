#!/usr/bin/env python3
"""Sample catalogue workbook generator for manual and performance runs.

Writes .xlsx files in one of the supported layouts, optionally with one
embedded PNG per product anchored at the product's image cell:
- header: classic header row (PLU | Warentext | Abbildung)
- block: one product per column, bands of name / code / code / image / gap
- banded: repeated name-row / code-row pairs

Example:
    python scripts/gen_sample_catalog.py --layout header --products 2000 --images out/KW07_2026.xlsx
"""
from __future__ import annotations

import argparse
import io
import sys
from pathlib import Path

import numpy as np
from openpyxl import Workbook
from openpyxl.drawing.image import Image as XLImage
from openpyxl.utils import get_column_letter
from PIL import Image

NAMES = [
    "Roggenbrot", "Dinkelbrötchen", "Laugenbrezel", "Croissant", "Berliner",
    "Apfeltasche", "Vollkornbrot", "Baguette", "Mohnschnecke", "Käsestange",
]


def product_rows(count: int, seed: int = 42) -> list[tuple[str, str]]:
    """(code, name) pairs with unique 5-digit codes."""
    rng = np.random.default_rng(seed)
    codes = rng.choice(np.arange(10000, 99999), size=count, replace=False)
    return [(str(code), f"{NAMES[i % len(NAMES)]} {i + 1}") for i, code in enumerate(codes)]


def png_bytes(seed: int, size: tuple[int, int] = (64, 48)) -> bytes:
    rng = np.random.default_rng(seed)
    color = tuple(int(v) for v in rng.integers(0, 255, 3))
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def _place_image(ws, row0: int, col0: int, seed: int) -> None:
    img = XLImage(io.BytesIO(png_bytes(seed)))
    ws.add_image(img, f"{get_column_letter(col0 + 1)}{row0 + 1}")


def build_header(products: list[tuple[str, str]], images: bool) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.append(["PLU", "Warentext", "Abbildung"])
    for i, (code, name) in enumerate(products):
        ws.append([int(code), name, None])
        if images:
            _place_image(ws, i + 1, 2, i)
    return wb


def build_block(products: list[tuple[str, str]], images: bool, per_band: int = 8) -> Workbook:
    wb = Workbook()
    ws = wb.active
    for i, (code, name) in enumerate(products):
        band, col0 = divmod(i, per_band)
        start = band * 5
        ws.cell(row=start + 1, column=col0 + 1, value=name)
        ws.cell(row=start + 2, column=col0 + 1, value=int(code))
        if images:
            _place_image(ws, start + 3, col0, i)
    return wb


def build_banded(products: list[tuple[str, str]], images: bool, per_band: int = 6) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.cell(row=1, column=1, value="Backshop Aktionsliste")
    for i, (code, name) in enumerate(products):
        band, col0 = divmod(i, per_band)
        col0 += 1  # column A holds the row labels
        start = 2 + band * 4
        if col0 == 1:
            ws.cell(row=start + 1, column=1, value="Name:")
            ws.cell(row=start + 2, column=1, value="Nummer:")
        ws.cell(row=start + 1, column=col0 + 1, value=name)
        ws.cell(row=start + 2, column=col0 + 1, value=code)
        if images:
            _place_image(ws, start + 2, col0, i)
    return wb


BUILDERS = {"header": build_header, "block": build_block, "banded": build_banded}


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Generate a sample catalogue workbook")
    p.add_argument("output", type=Path)
    p.add_argument("--layout", choices=sorted(BUILDERS), default="header")
    p.add_argument("--products", type=int, default=200)
    p.add_argument("--images", action="store_true", help="Embed one PNG per product")
    p.add_argument("--seed", type=int, default=42)
    args = p.parse_args(argv)

    if not 1 <= args.products <= 89999:
        print("products must be between 1 and 89999", file=sys.stderr)
        return 1
    wb = BUILDERS[args.layout](product_rows(args.products, args.seed), args.images)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    wb.save(args.output)
    print(f"wrote {args.output} ({args.layout}, {args.products} products)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
