from __future__ import annotations

import pytest

from catalog_ingest.excel.extractor import parse_grid, parse_workbook, same_name_different_code
from catalog_ingest.excel.reader import UnreadableWorkbookError
from catalog_ingest.models.catalog import ProductType
from catalog_ingest.models.parse_result import LayoutKind
from catalog_ingest.models.row_data import CellPosition, NormalizedRow, SkipReason
from conftest import build_workbook


def test_parse_workbook_header_layout(header_workbook):
    result = parse_workbook(header_workbook, "Backshop KW07 2026.xlsx")
    assert result.layout is LayoutKind.HEADER
    assert result.sheet_name == "Tabelle1"
    assert result.product_type is ProductType.PIECE
    assert [(r.code, r.display_name) for r in result.rows] == [
        ("81597", "Roggenbrot"),
        ("12345", "Croissant"),
        ("22222", "Berliner Pfannkuchen"),
    ]
    assert result.columns is not None and result.columns.image_col == 2
    assert [r.image_position for r in result.rows] == [CellPosition(1, 2), CellPosition(2, 2), CellPosition(3, 2)]
    assert result.skip_counts == {reason: 0 for reason in SkipReason}


def test_parse_workbook_weight_sheet():
    data = build_workbook([["Gewichtsartikel"], ["PLU", "Warentext"], [40001, "Hackfleisch gemischt"]])
    result = parse_workbook(data, "liste.xlsx")
    assert result.product_type is ProductType.WEIGHT
    assert [r.code for r in result.rows] == ["40001"]


def test_parse_workbook_is_repeatable(header_workbook):
    assert parse_workbook(header_workbook, "a.xlsx") == parse_workbook(header_workbook, "a.xlsx")


def test_parse_workbook_unreadable():
    with pytest.raises(UnreadableWorkbookError):
        parse_workbook(b"\x00\x01garbage", "kaputt.xlsx")


def test_same_name_different_code_report():
    rows = [
        NormalizedRow("11111", "Brot", CellPosition(1, 0)),
        NormalizedRow("22222", "Brot", CellPosition(2, 0)),
        NormalizedRow("33333", "Brötchen", CellPosition(3, 0)),
    ]
    report = same_name_different_code(rows)
    assert len(report) == 1
    assert report[0].name == "Brot"
    assert report[0].codes == ["11111", "22222"]
    assert report[0].occurrences[1] == ("22222", CellPosition(2, 0))


def test_same_name_report_groups_by_exact_spelling():
    rows = [
        NormalizedRow("10000", "Brot", CellPosition(1, 0)),
        NormalizedRow("20000", "BROT", CellPosition(2, 0)),
    ]
    assert same_name_different_code(rows) == []


def test_parse_grid_attaches_same_name_report():
    grid = [["PLU", "Warentext"], ["11111", "Brot"], ["22222", "Brot"]]
    result = parse_grid(grid, "liste.xlsx")
    assert [e.codes for e in result.same_name_different_code] == [["11111", "22222"]]
