import asyncio
import base64
import io

import httpx
from PIL import Image

from grimoire.report.assets import (
    FontAsset,
    ReadyBarrier,
    decode_data_uri,
    normalize_png,
    parse_font_files,
    placeholder_image,
)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _jpeg_bytes(size=(64, 32)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, "#2d6a4f").save(buffer, format="JPEG")
    return buffer.getvalue()


def _data_uri(data: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def test_placeholder_is_a_cached_png():
    assert placeholder_image().startswith(PNG_SIGNATURE)
    assert placeholder_image() is placeholder_image()


def test_normalize_png_converts_and_bounds_size():
    png = normalize_png(_jpeg_bytes(size=(3000, 1500)))

    with Image.open(io.BytesIO(png)) as image:
        assert image.format == "PNG"
        assert image.size == (1024, 512)


def test_decode_data_uri_rejects_non_base64():
    try:
        decode_data_uri("data:image/png,raw")
    except ValueError:
        pass
    else:
        raise AssertionError("non-base64 data URI accepted")


def test_parse_font_files_skips_malformed_entries():
    fonts = parse_font_files(["Cinzel=/fonts/Cinzel.ttf", "broken", "=/x.ttf"])

    assert fonts == [FontAsset(family="Cinzel", path="/fonts/Cinzel.ttf")]


def test_barrier_resolves_data_uri_and_allowed_http_images():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_jpeg_bytes(), headers={"Content-Type": "image/jpeg"})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            barrier = ReadyBarrier(2.0, client=client, allowed_hosts=("images.example",))
            barrier.track_image("inline.png", _data_uri(_jpeg_bytes()))
            barrier.track_image("remote.png", "https://images.example/sage.jpg")
            return await barrier.wait()

    ready = asyncio.run(run())

    assert set(ready.images) == {"inline.png", "remote.png"}
    assert all(data.startswith(PNG_SIGNATURE) for data in ready.images.values())
    assert ready.placeholders == []


def test_barrier_substitutes_placeholder_for_failed_images(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            barrier = ReadyBarrier(2.0, client=client, allowed_hosts=("images.example",))
            barrier.track_image("missing.png", str(tmp_path / "nope.png"))
            barrier.track_image("garbage.png", _data_uri(b"not an image at all"))
            barrier.track_image("gone.png", "https://images.example/gone.png")
            barrier.track_image("blank.png", "")
            return await barrier.wait()

    ready = asyncio.run(run())

    assert sorted(ready.placeholders) == ["blank.png", "garbage.png", "gone.png", "missing.png"]
    assert all(data == placeholder_image() for data in ready.images.values())


def test_barrier_never_reads_server_files_or_unlisted_hosts(tmp_path):
    secret = tmp_path / "secret.jpg"
    secret.write_bytes(_jpeg_bytes())
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, content=_jpeg_bytes(), headers={"Content-Type": "image/jpeg"})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            barrier = ReadyBarrier(2.0, client=client, allowed_hosts=("images.example",))
            barrier.track_image("path.png", str(secret))
            barrier.track_image("file.png", secret.as_uri())
            barrier.track_image("internal.png", "http://169.254.169.254/latest/meta-data")
            barrier.track_image("lookalike.png", "https://images.example.evil/sage.jpg")
            return await barrier.wait()

    ready = asyncio.run(run())

    assert sorted(ready.placeholders) == ["file.png", "internal.png", "lookalike.png", "path.png"]
    assert all(data == placeholder_image() for data in ready.images.values())
    assert requested == []


def test_barrier_does_not_follow_redirects_off_the_allowed_host():
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.host)
        return httpx.Response(302, headers={"Location": "http://localhost/private.png"})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True) as client:
            barrier = ReadyBarrier(2.0, client=client, allowed_hosts=("images.example",))
            barrier.track_image("moved.png", "https://images.example/moved.png")
            return await barrier.wait()

    ready = asyncio.run(run())

    assert ready.placeholders == ["moved.png"]
    assert requested == ["images.example"]


def test_barrier_bounds_slow_images(monkeypatch):
    barrier = ReadyBarrier(0.1)

    async def _slow_read(ref, client):
        await asyncio.sleep(5)
        return b""

    monkeypatch.setattr(barrier, "_read_image", _slow_read)
    barrier.track_image("slow.png", "data:image/png;base64,AAAA")

    ready = asyncio.run(asyncio.wait_for(barrier.wait(), timeout=3))

    assert ready.placeholders == ["slow.png"]


def test_barrier_skips_unreadable_fonts(tmp_path):
    bogus = tmp_path / "bogus.ttf"
    bogus.write_bytes(b"definitely not a font")

    barrier = ReadyBarrier(1.0)
    barrier.track_font(FontAsset(family="Bogus", path=str(bogus)))
    barrier.track_font(FontAsset(family="Missing", path=str(tmp_path / "missing.ttf")))

    ready = asyncio.run(barrier.wait())

    assert ready.fonts == []
