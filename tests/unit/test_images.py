from __future__ import annotations

import io
import zipfile

from PIL import Image

from catalog_ingest.images import extractor
from catalog_ingest.images.archive import list_media, natural_key, read_first_sheet_pictures
from catalog_ingest.images.extractor import archive_images, extract_images, order_paired_images, structured_images
from catalog_ingest.images.resize import detect_format, normalize_extension, normalize_image
from catalog_ingest.models.images import ExtractedImage, ExtractionTier, ImageExtractionResult
from catalog_ingest.models.row_data import CellPosition, NormalizedRow
from catalog_ingest.services.pipeline import ingest_workbook
from conftest import build_workbook, make_png

MAIN = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PKG = "http://schemas.openxmlformats.org/package/2006/relationships"
XDR = "http://schemas.openxmlformats.org/drawingml/2006/spreadsheetDrawing"
A = "http://schemas.openxmlformats.org/drawingml/2006/main"


def _jpeg(size=(400, 100)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (10, 120, 10)).save(buf, format="JPEG")
    return buf.getvalue()


def _anchor(kind: str, row: int, col: int, rid: str) -> str:
    ext = '<xdr:ext cx="1" cy="1"/>' if kind == "oneCellAnchor" else ""
    to = "<xdr:to><xdr:col>9</xdr:col><xdr:colOff>0</xdr:colOff><xdr:row>9</xdr:row><xdr:rowOff>0</xdr:rowOff></xdr:to>"
    return (
        f"<xdr:{kind}><xdr:from><xdr:col>{col}</xdr:col><xdr:colOff>0</xdr:colOff>"
        f"<xdr:row>{row}</xdr:row><xdr:rowOff>0</xdr:rowOff></xdr:from>"
        f"{to if kind == 'twoCellAnchor' else ext}"
        f'<xdr:pic><xdr:blipFill><a:blip r:embed="{rid}"/></xdr:blipFill></xdr:pic>'
        f"<xdr:clientData/></xdr:{kind}>"
    )


def drawing_archive(png: bytes, jpeg: bytes) -> bytes:
    """Bare OOXML zip: one sheet, one drawing, a two-cell and a one-cell anchor."""
    files = {
        "xl/workbook.xml": (
            f'<workbook xmlns="{MAIN}" xmlns:r="{REL}"><sheets>'
            f'<sheet name="Liste" sheetId="1" r:id="rId1"/></sheets></workbook>'
        ),
        "xl/_rels/workbook.xml.rels": (
            f'<Relationships xmlns="{PKG}"><Relationship Id="rId1" Type="ws" Target="worksheets/sheet1.xml"/>'
            "</Relationships>"
        ),
        "xl/worksheets/sheet1.xml": (
            f'<worksheet xmlns="{MAIN}" xmlns:r="{REL}"><sheetData/><drawing r:id="rId1"/></worksheet>'
        ),
        "xl/worksheets/_rels/sheet1.xml.rels": (
            f'<Relationships xmlns="{PKG}"><Relationship Id="rId1" Type="d" Target="../drawings/drawing1.xml"/>'
            "</Relationships>"
        ),
        "xl/drawings/drawing1.xml": (
            f'<xdr:wsDr xmlns:xdr="{XDR}" xmlns:a="{A}" xmlns:r="{REL}">'
            + _anchor("oneCellAnchor", 7, 3, "rId2")
            + _anchor("twoCellAnchor", 1, 0, "rId1")
            + "</xdr:wsDr>"
        ),
        "xl/drawings/_rels/drawing1.xml.rels": (
            f'<Relationships xmlns="{PKG}">'
            '<Relationship Id="rId1" Type="i" Target="../media/image1.png"/>'
            '<Relationship Id="rId2" Type="i" Target="../media/image2.jpeg"/>'
            "</Relationships>"
        ),
    }
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, text in files.items():
            zf.writestr(name, text)
        zf.writestr("xl/media/image1.png", png)
        zf.writestr("xl/media/image2.jpeg", jpeg)
    return buf.getvalue()


# --- resize ----------------------------------------------------------------------


def test_detect_format():
    assert detect_format(make_png()) == "png"
    assert detect_format(_jpeg()) == "jpg"
    assert detect_format(b"GIF89a....") == "gif"
    assert detect_format(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "webp"
    assert detect_format(b"????", fallback="JPEG") == "jpg"
    assert normalize_extension(".TIF") == "tiff"


def test_normalize_image_scales_longer_edge():
    out = normalize_image(make_png(size=(40, 30)), "png", 192)
    with Image.open(io.BytesIO(out)) as img:
        assert img.size == (192, 144)
        assert img.format == "PNG"
    out = normalize_image(_jpeg((400, 100)), "jpg", 192)
    with Image.open(io.BytesIO(out)) as img:
        assert img.size == (192, 48)
        assert img.format == "JPEG"


def test_normalize_image_passes_through_on_failure():
    broken = b"\x89PNG\r\n\x1a\nnot really"
    assert normalize_image(broken, "png") == broken
    emf = b"\x01\x00\x00\x00" + b"\x00" * 36 + b" EMF"
    assert normalize_image(emf, "emf") == emf


# --- raw archive -------------------------------------------------------------------


def test_read_first_sheet_pictures_from_drawing_markup():
    png, jpeg = make_png(), _jpeg()
    pictures = read_first_sheet_pictures(drawing_archive(png, jpeg))
    assert [(p.row, p.col, p.media_path) for p in pictures] == [
        (1, 0, "xl/media/image1.png"),
        (7, 3, "xl/media/image2.jpeg"),
    ]
    assert pictures[0].data == png


def test_archive_images_detect_format():
    images = archive_images(drawing_archive(make_png(), _jpeg()))
    assert [(i.position, i.format) for i in images] == [(CellPosition(1, 0), "png"), (CellPosition(7, 3), "jpg")]


def test_media_list_is_naturally_sorted():
    assert sorted(["image10.png", "image2.png", "image1.png"], key=natural_key) == [
        "image1.png",
        "image2.png",
        "image10.png",
    ]
    names = [name for name, _ in list_media(drawing_archive(make_png(), _jpeg()))]
    assert names == ["xl/media/image1.png", "xl/media/image2.jpeg"]


# --- tiers -----------------------------------------------------------------------------


def test_structured_tier(header_workbook):
    result = extract_images(header_workbook, "liste.xlsx")
    assert result.tier is ExtractionTier.STRUCTURED
    assert [i.position for i in result.images] == [CellPosition(1, 2), CellPosition(2, 2), CellPosition(3, 2)]
    with Image.open(io.BytesIO(result.images[0].data)) as img:
        assert max(img.size) == 192


def test_structured_images_keep_original_bytes_without_resize(header_workbook):
    raw = structured_images(header_workbook)
    result = extract_images(header_workbook, "liste.xlsx", resize_target=None)
    assert [i.data for i in result.images] == [i.data for i in raw]


def test_archive_tier_when_structured_read_fails():
    result = extract_images(drawing_archive(make_png(), _jpeg()), "liste.xlsx", resize_target=None)
    assert result.tier is ExtractionTier.ARCHIVE
    assert len(result.images) == 2
    assert result.media_count == 2


def test_order_tier_pairs_media_with_row_positions(monkeypatch, header_workbook):
    monkeypatch.setattr(extractor, "structured_images", lambda data: [])
    monkeypatch.setattr(extractor, "archive_images", lambda data: [])
    rows = [
        NormalizedRow("22222", "B", CellPosition(3, 0), CellPosition(3, 2)),
        NormalizedRow("81597", "A", CellPosition(1, 0), CellPosition(1, 2)),
        NormalizedRow("12345", "C", CellPosition(2, 0), None),
    ]
    result = extract_images(header_workbook, "liste.xlsx", rows, resize_target=None)
    assert result.tier is ExtractionTier.ORDER
    assert [i.position for i in result.images] == [CellPosition(1, 2), CellPosition(3, 2)]
    assert result.media_count == 3


def test_order_paired_images_stops_at_shorter_list():
    media = [("xl/media/image1.png", make_png()), ("xl/media/image2.png", make_png())]
    rows = [NormalizedRow("11111", "A", CellPosition(0, 0), CellPosition(5, 1))]
    assert [i.position for i in order_paired_images(media, rows)] == [CellPosition(5, 1)]


def test_workbook_without_images_yields_empty_result():
    data = build_workbook([["PLU", "Warentext"], [81597, "Brot"]])
    result = extract_images(data, "liste.xlsx")
    assert result.tier is ExtractionTier.NONE
    assert result.images == []


def test_legacy_container_yields_zero_images():
    ole_header = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64
    result = extract_images(ole_header, "alt.xls")
    assert result.tier is ExtractionTier.NONE
    assert result.images == []


def _truncate_member(data: bytes, name: str) -> bytes:
    src = zipfile.ZipFile(io.BytesIO(data))
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as out:
        for info in src.infolist():
            payload = src.read(info.filename)
            if info.filename == name:
                payload = payload[: len(payload) // 2]
            out.writestr(info.filename, payload)
    return buf.getvalue()


def test_malformed_drawing_is_not_fatal(header_workbook):
    broken = _truncate_member(header_workbook, "xl/drawings/drawing1.xml")
    images = extract_images(broken, "liste.xlsx")
    assert images.tier is ExtractionTier.NONE
    assert images.images == []

    result = ingest_workbook(broken, "liste.xlsx")
    assert [r.code for r in result.rows] == ["81597", "12345", "22222"]
    assert result.match.assignments == []


def test_by_position_first_image_wins():
    a = ExtractedImage(CellPosition(1, 1), b"a", "png")
    b = ExtractedImage(CellPosition(1, 1), b"b", "png")
    c = ExtractedImage(CellPosition(2, 1), b"c", "png")
    result = ImageExtractionResult(images=[a, b, c], tier=ExtractionTier.STRUCTURED)
    assert result.by_position() == {CellPosition(1, 1): b"a", CellPosition(2, 1): b"c"}
    assert c.content_type == "image/png"
