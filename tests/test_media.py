import io
import time
from pathlib import Path

import anyio
import pytest
from PIL import Image

from app.services import media as media_module
from app.services.media import (
    MediaStore,
    PathTraversalError,
    UnsupportedMediaError,
    get_extension,
    make_preview,
)


def _png(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (10, 120, 30)).save(buf, format="PNG")
    return buf.getvalue()


def test_build_filename_uses_owner_stamp_and_extension(tmp_path):
    store = MediaStore(tmp_path)
    assert store.build_filename("alice", "holiday.photo.JPG", stamp=1700000000123) == "alice_1700000000123.JPG"


def test_get_extension_requirements():
    assert get_extension("a.png") == "png"
    with pytest.raises(ValueError, match="missing_filename"):
        get_extension("")
    with pytest.raises(UnsupportedMediaError):
        get_extension("noextension")
    with pytest.raises(UnsupportedMediaError):
        get_extension("trailingdot.")


def test_preview_is_scaled_to_width_keeping_aspect_ratio():
    preview, fmt = make_preview(_png(300, 200), "png")
    assert fmt == "PNG"
    with Image.open(io.BytesIO(preview)) as image:
        assert image.size == (100, 67)


def test_preview_format_follows_extension():
    preview, fmt = make_preview(_png(400, 100), "jpg")
    assert fmt == "JPEG"
    with Image.open(io.BytesIO(preview)) as image:
        assert image.format == "JPEG"
        assert image.size == (100, 25)


def test_preview_rejects_undecodable_and_unknown_formats():
    with pytest.raises(UnsupportedMediaError):
        make_preview(b"not an image", "png")
    with pytest.raises(UnsupportedMediaError):
        make_preview(_png(10, 10), "xyz")


def test_resolve_rejects_paths_outside_base(tmp_path):
    store = MediaStore(tmp_path / "ads")
    assert store.resolve("bob_1.png").parent == (tmp_path / "ads").resolve()
    with pytest.raises(PathTraversalError):
        store.resolve("../escape.png")
    with pytest.raises(PathTraversalError):
        store.resolve("/etc/passwd")


def test_write_rejects_traversing_owner_name(tmp_path):
    store = MediaStore(tmp_path / "ads")
    with pytest.raises(PathTraversalError):
        store.write("../../evil", _png(20, 20), "x.png")
    assert not list(tmp_path.rglob("*evil*"))


def test_write_rejects_overlong_extension_before_touching_disk(tmp_path):
    store = MediaStore(tmp_path)
    with pytest.raises(UnsupportedMediaError):
        store.write("frank", _png(20, 20), "x." + "a" * 300)
    assert not list(tmp_path.iterdir())


def test_same_millisecond_uploads_do_not_collide(tmp_path, monkeypatch):
    monkeypatch.setattr(media_module, "_epoch_millis", lambda: 1234)
    store = MediaStore(tmp_path)

    first = store.write("erin", _png(20, 20), "a.png")
    second = store.write("erin", _png(20, 20), "b.png")

    assert first.path.endswith("erin_1234.png")
    assert second.path.endswith("erin_1235.png")


def test_read_and_discard_tolerate_missing_files(tmp_path):
    store = MediaStore(tmp_path)
    missing = tmp_path / "gone.png"
    assert store.read(str(missing)) is None
    assert store.read(None) is None
    store.discard(str(missing))
    store.discard(None)


@pytest.mark.anyio
async def test_store_writes_file_and_removes_old_one(tmp_path):
    store = MediaStore(tmp_path)
    data = _png(200, 100)

    async with store.store("carol", data, "one.png", "image/png") as first:
        pass
    async with store.store("carol", _png(50, 50), "two.png", old_path=first.path) as second:
        pass

    assert first.path != second.path
    assert not Path(first.path).exists()
    assert Path(second.path).read_bytes() != data
    assert second.media_type == "image/png"
    assert await store.read_async(second.path) is not None


@pytest.mark.anyio
async def test_store_discards_new_file_when_block_fails(tmp_path):
    store = MediaStore(tmp_path)
    async with store.store("dave", _png(20, 20), "old.png") as old:
        pass

    written = {}
    with pytest.raises(RuntimeError):
        async with store.store("dave", _png(30, 30), "new.png", old_path=old.path) as new:
            written["path"] = new.path
            raise RuntimeError("database write failed")

    assert not Path(written["path"]).exists()
    assert Path(old.path).exists()


@pytest.mark.anyio
async def test_store_keeps_event_loop_responsive(tmp_path, monkeypatch):
    real_make_preview = media_module.make_preview

    def slow_make_preview(*args, **kwargs):
        time.sleep(0.5)
        return real_make_preview(*args, **kwargs)

    monkeypatch.setattr(media_module, "make_preview", slow_make_preview)
    store = MediaStore(tmp_path)
    gaps: list[float] = []

    async def ticker(stop: anyio.Event) -> None:
        last = time.monotonic()
        while not stop.is_set():
            await anyio.sleep(0.01)
            now = time.monotonic()
            gaps.append(now - last)
            last = now

    stop = anyio.Event()
    async with anyio.create_task_group() as tg:
        tg.start_soon(ticker, stop)
        async with store.store("gina", _png(40, 40), "slow.png"):
            pass
        stop.set()

    assert gaps
    assert max(gaps) < 0.25
