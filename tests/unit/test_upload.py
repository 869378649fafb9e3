from __future__ import annotations

import threading
from pathlib import Path

from catalog_ingest.models.images import ExtractedImage, ImageAssignment, MatchTier
from catalog_ingest.models.row_data import CellPosition, NormalizedRow
from catalog_ingest.services.upload import DirectoryBlobStore, blob_path, upload_matched_images


class FakeStore:
    def __init__(self, fail_codes: set[str] = frozenset()) -> None:
        self.fail_codes = fail_codes
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        with self._lock:
            self.calls.append((path, content_type))
        if any(code in path for code in self.fail_codes):
            raise ConnectionError("bucket unavailable")
        return f"https://cdn.example/{path}"


def assignment(code: str, fmt: str = "png") -> ImageAssignment:
    r = NormalizedRow(code, f"Artikel {code}", CellPosition(1, 0), CellPosition(1, 2))
    return ImageAssignment(row=r, image=ExtractedImage(CellPosition(1, 2), b"img", fmt), tier=MatchTier.EXACT)


def test_blob_path_sanitizes_code():
    assert blob_path("backshop", "81597", "png") == "backshop/81597.png"
    assert blob_path("backshop/", "81/97 x", "jpg") == "backshop/81_97_x.jpg"
    assert blob_path("", "81597", "gif") == "81597.gif"


def test_upload_returns_url_per_code():
    store = FakeStore()
    result = upload_matched_images([assignment("11111"), assignment("22222", "jpg")], store, path_prefix="p")
    assert result.urls == {
        "11111": "https://cdn.example/p/11111.png",
        "22222": "https://cdn.example/p/22222.jpg",
    }
    assert result.failed_codes == []
    assert ("p/22222.jpg", "image/jpeg") in store.calls


def test_failed_upload_is_left_out():
    store = FakeStore(fail_codes={"22222"})
    items = [assignment("11111"), assignment("22222"), assignment("33333")]
    result = upload_matched_images(items, store, path_prefix="p")
    assert set(result.urls) == {"11111", "33333"}
    assert result.failed_codes == ["22222"]
    assert result.uploaded == 2


def test_batches_and_progress_callback():
    progress: list[tuple[int, int]] = []
    items = [assignment(f"{10000 + i}") for i in range(20)]
    result = upload_matched_images(
        items,
        FakeStore(fail_codes={"10003"}),
        path_prefix="p",
        concurrency=8,
        progress_callback=lambda done, total: progress.append((done, total)),
    )
    assert result.total_batches == 3
    assert progress == [(0, 20), (7, 20), (15, 20), (19, 20)]
    assert result.p95_batch_seconds >= 0.0


def test_empty_upload_reports_zero_progress():
    progress: list[tuple[int, int]] = []
    result = upload_matched_images([], FakeStore(), path_prefix="p", progress_callback=lambda d, t: progress.append((d, t)))
    assert progress == [(0, 0)]
    assert result.urls == {}
    assert result.total_batches == 0


def test_directory_blob_store_overwrites(tmp_path: Path):
    store = DirectoryBlobStore(tmp_path)
    url = store.upload("p/11111.png", b"one", "image/png")
    store.upload("p/11111.png", b"two", "image/png")
    assert url.startswith("file://")
    assert (tmp_path / "p" / "11111.png").read_bytes() == b"two"
