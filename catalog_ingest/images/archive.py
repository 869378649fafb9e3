from __future__ import annotations

import io
import posixpath
import re
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass

"""Raw OOXML archive access for embedded pictures.

Used when the workbook library reports no anchored images although the
container holds drawings. Follows the relationship chain
workbook -> first sheet -> drawing -> media and reads the top-left anchor
cell of every picture.
"""

__all__ = [
    "DrawingPicture",
    "read_first_sheet_pictures",
    "list_media",
    "natural_key",
]

_NS = {
    "main": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
    "xdr": "http://schemas.openxmlformats.org/drawingml/2006/spreadsheetDrawing",
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
}
_R_ID = "{http://schemas.openxmlformats.org/officeDocument/2006/relationships}id"
_R_EMBED = "{http://schemas.openxmlformats.org/officeDocument/2006/relationships}embed"
_DIGITS = re.compile(r"(\d+)")


@dataclass(frozen=True)
class DrawingPicture:
    row: int  # 0-based anchor row
    col: int  # 0-based anchor column
    media_path: str
    data: bytes


def _resolve(base_path: str, target: str | None) -> str | None:
    if not target:
        return None
    target = target.replace("\\", "/")
    if target.startswith("/"):
        return target.lstrip("/")
    return posixpath.normpath(posixpath.join(posixpath.dirname(base_path), target))


def _rels_path(part_path: str) -> str:
    return f"{posixpath.dirname(part_path)}/_rels/{posixpath.basename(part_path)}.rels"


def _relationships(archive: zipfile.ZipFile, names: set[str], rels_path: str) -> dict[str, str]:
    if rels_path not in names:
        return {}
    root = ET.fromstring(archive.read(rels_path))
    out: dict[str, str] = {}
    for rel in root.findall("rel:Relationship", _NS):
        rel_id = rel.attrib.get("Id")
        target = rel.attrib.get("Target")
        if rel_id and target:
            out[rel_id] = target
    return out


def _first_sheet_path(archive: zipfile.ZipFile, names: set[str]) -> str | None:
    workbook_path = "xl/workbook.xml"
    if workbook_path in names:
        root = ET.fromstring(archive.read(workbook_path))
        rels = _relationships(archive, names, _rels_path(workbook_path))
        sheet = root.find(".//main:sheets/main:sheet", _NS)
        if sheet is not None:
            path = _resolve(workbook_path, rels.get(sheet.attrib.get(_R_ID, "")))
            if path in names:
                return path
    sheets = sorted(
        (n for n in names if re.fullmatch(r"xl/worksheets/sheet\d+\.xml", n)),
        key=natural_key,
    )
    return sheets[0] if sheets else None


def _anchor_cell(anchor: ET.Element) -> tuple[int, int] | None:
    start = anchor.find("xdr:from", _NS)
    if start is None:
        return None
    row = start.findtext("xdr:row", namespaces=_NS)
    col = start.findtext("xdr:col", namespaces=_NS)
    if row is None or col is None:
        return None
    try:
        return max(0, int(row)), max(0, int(col))
    except ValueError:
        return None


def natural_key(name: str) -> list[object]:
    """'image10.png' sorts after 'image2.png'."""
    return [int(part) if part.isdigit() else part.lower() for part in _DIGITS.split(name)]


def read_first_sheet_pictures(data: bytes) -> list[DrawingPicture]:
    """Anchored pictures of the first sheet, sorted by (row, col).

    Raises zipfile.BadZipFile for non-zip containers; the caller decides.
    """
    pictures: list[DrawingPicture] = []
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        names = set(archive.namelist())
        sheet_path = _first_sheet_path(archive, names)
        if sheet_path is None:
            return pictures
        sheet_root = ET.fromstring(archive.read(sheet_path))
        sheet_rels = _relationships(archive, names, _rels_path(sheet_path))
        for drawing in sheet_root.findall(".//main:drawing", _NS):
            drawing_path = _resolve(sheet_path, sheet_rels.get(drawing.attrib.get(_R_ID, "")))
            if drawing_path is None or drawing_path not in names:
                continue
            drawing_root = ET.fromstring(archive.read(drawing_path))
            drawing_rels = _relationships(archive, names, _rels_path(drawing_path))
            anchors = drawing_root.findall("xdr:twoCellAnchor", _NS) + drawing_root.findall(
                "xdr:oneCellAnchor", _NS
            )
            for anchor in anchors:
                cell = _anchor_cell(anchor)
                blip = anchor.find(".//a:blip", _NS)
                if cell is None or blip is None:
                    continue
                media_path = _resolve(drawing_path, drawing_rels.get(blip.attrib.get(_R_EMBED, "")))
                if media_path is None or media_path not in names:
                    continue
                payload = archive.read(media_path)
                if payload:
                    pictures.append(DrawingPicture(cell[0], cell[1], media_path, payload))
    pictures.sort(key=lambda p: (p.row, p.col, natural_key(p.media_path)))
    return pictures


def list_media(data: bytes) -> list[tuple[str, bytes]]:
    """All xl/media entries in natural name order."""
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        media = [n for n in archive.namelist() if n.startswith("xl/media/") and not n.endswith("/")]
        return [(name, archive.read(name)) for name in sorted(media, key=natural_key)]
