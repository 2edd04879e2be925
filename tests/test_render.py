import asyncio
import math

import cv2
import numpy as np
import pytest

import styleai.render as render
from styleai.errors import CanvasUnavailable, ImageLoadFailure, InvalidLandmarks, RenderFailure
from styleai.images import ImageCache, fetch_source
from styleai.render import Canvas, RenderPipeline, effective_canvas_size

PHOTO = (10, 200, 30, 255)
RED = (220, 0, 0, 255)
BLUE = (0, 0, 220, 255)


class GatedFetcher:
    """Holds back chosen sources until their gate is opened."""

    def __init__(self):
        self.gates = {}

    def gate(self, src):
        self.gates[src] = asyncio.Event()
        return self.gates[src]

    async def __call__(self, src):
        ev = self.gates.get(src)
        if ev is not None:
            await ev.wait()
        return await fetch_source(src)


def _rgb(canvas, row, col):
    return tuple(int(v) for v in canvas.pixels[row, col, :3])


def test_canvas_size_is_capped_per_axis():
    assert effective_canvas_size(200, 150, 1.0, 1920) == (200, 150)
    assert effective_canvas_size(200, 150, 2.0, 1920) == (400, 300)
    assert effective_canvas_size(1200, 800, 2.0, 1920) == (1920, 1600)
    assert effective_canvas_size(3000, 3000, 3.0, 1920) == (1920, 1920)


def test_transform_stack():
    ctx = Canvas(10, 10).get_context()
    ctx.translate(10, 20)
    ctx.save()
    ctx.rotate(math.pi / 2)
    x, y = ctx.transform_point(1, 0)
    assert (x, y) == (pytest.approx(10), pytest.approx(21))
    ctx.restore()
    assert ctx.transform_point(1, 0) == (pytest.approx(11), pytest.approx(20))


def test_photo_then_overlay(data_uri, face_landmarks):
    pipeline = RenderPipeline(ImageCache())
    canvas = Canvas(200, 150)
    drawn = asyncio.run(pipeline.render_preview(canvas, data_uri(100, 80, PHOTO), data_uri(40, 40, RED), face_landmarks))
    assert drawn is True
    assert (canvas.width, canvas.height) == (200, 150)
    # overlay is 52x52 centred at (100, 52.8)
    assert _rgb(canvas, 52, 100) == RED[:3]
    assert _rgb(canvas, 140, 10) == PHOTO[:3]
    assert _rgb(canvas, 10, 190) == PHOTO[:3]


def test_transparent_template_keeps_photo(data_uri, face_landmarks):
    pipeline = RenderPipeline(ImageCache())
    canvas = Canvas(200, 150)
    asyncio.run(pipeline.render_preview(canvas, data_uri(50, 50, PHOTO), data_uri(40, 40, (255, 0, 0, 0)), face_landmarks))
    assert _rgb(canvas, 52, 100) == PHOTO[:3]


def test_device_pixel_ratio_scales_drawing(data_uri, face_landmarks):
    pipeline = RenderPipeline(ImageCache())
    canvas = Canvas(200, 150, device_pixel_ratio=2.0)
    asyncio.run(pipeline.render_preview(canvas, data_uri(100, 80, PHOTO), data_uri(40, 40, RED), face_landmarks))
    assert canvas.pixels.shape == (300, 400, 4)
    assert _rgb(canvas, 105, 200) == RED[:3]
    assert _rgb(canvas, 280, 20) == PHOTO[:3]


def test_rotation_pivots_on_overlay_centre(array_uri, data_uri, landmarks_factory):
    half = np.zeros((20, 40, 4), dtype=np.uint8)
    half[:, :20] = RED
    half[:, 20:] = BLUE
    template = array_uri(half)

    # eye line pointing straight down: a quarter turn clockwise
    lm = landmarks_factory({
        "forehead_top": (0.5, 0.3),
        "left_cheekbone": (0.4, 0.5), "right_cheekbone": (0.6, 0.5),
        "left_eye_outer": (0.5, 0.3), "right_eye_outer": (0.5, 0.5),
    })
    canvas = Canvas(200, 150)
    asyncio.run(RenderPipeline(ImageCache()).render_preview(canvas, data_uri(50, 50, PHOTO), template, lm))
    # 52x26 overlay centred at (100, 48.9), now standing upright
    assert _rgb(canvas, 35, 100) == RED[:3]
    assert _rgb(canvas, 62, 100) == BLUE[:3]
    assert _rgb(canvas, 49, 78) == PHOTO[:3]


def test_buffer_reallocated_only_on_size_change(data_uri, face_landmarks):
    pipeline = RenderPipeline(ImageCache())
    canvas = Canvas(120, 90)
    photo, red = data_uri(30, 30, PHOTO), data_uri(10, 10, RED)

    async def run():
        await pipeline.render_preview(canvas, photo, red, face_landmarks)
        await pipeline.render_preview(canvas, photo, red, face_landmarks)
        assert canvas.allocations == 1
        canvas.set_display(160, 90)
        await pipeline.render_preview(canvas, photo, red, face_landmarks)

    asyncio.run(run())
    assert canvas.allocations == 2
    assert canvas.pixels.shape == (90, 160, 4)


def test_last_request_wins(data_uri, face_landmarks):
    fetcher = GatedFetcher()
    pipeline = RenderPipeline(ImageCache(fetcher))
    canvas = Canvas(200, 150)
    photo, red, blue = data_uri(60, 40, PHOTO), data_uri(40, 40, RED), data_uri(40, 40, BLUE)

    async def run():
        slow = fetcher.gate(red)
        first = asyncio.create_task(pipeline.render_preview(canvas, photo, red, face_landmarks))
        await asyncio.sleep(0)
        second = asyncio.create_task(pipeline.render_preview(canvas, photo, blue, face_landmarks))
        newer = await second
        slow.set()
        older = await first
        return older, newer

    older, newer = asyncio.run(run())
    assert newer is True
    assert older is False
    assert _rgb(canvas, 52, 100) == BLUE[:3]


def test_stale_explicit_generation_is_dropped(data_uri, face_landmarks):
    pipeline = RenderPipeline(ImageCache())
    canvas = Canvas(200, 150)
    photo = data_uri(60, 40, PHOTO)

    async def run():
        a = await pipeline.render_preview(canvas, photo, data_uri(40, 40, BLUE), face_landmarks, generation=5)
        b = await pipeline.render_preview(canvas, photo, data_uri(40, 40, RED), face_landmarks, generation=3)
        return a, b

    assert asyncio.run(run()) == (True, False)
    assert _rgb(canvas, 52, 100) == BLUE[:3]
    assert pipeline.latest_generation == 5


def test_separate_canvases_do_not_supersede_each_other(data_uri, face_landmarks):
    pipeline = RenderPipeline(ImageCache())
    one, two = Canvas(200, 150), Canvas(200, 150)
    photo = data_uri(60, 40, PHOTO)

    async def run():
        return await asyncio.gather(
            pipeline.render_preview(one, photo, data_uri(40, 40, RED), face_landmarks),
            pipeline.render_preview(two, photo, data_uri(40, 40, BLUE), face_landmarks),
        )

    assert asyncio.run(run()) == [True, True]
    assert _rgb(one, 52, 100) == RED[:3]
    assert _rgb(two, 52, 100) == BLUE[:3]


def test_closed_canvas_is_unavailable(data_uri, face_landmarks):
    canvas = Canvas(200, 150)
    canvas.close()
    with pytest.raises(CanvasUnavailable):
        asyncio.run(RenderPipeline(ImageCache()).render_preview(
            canvas, data_uri(10, 10, PHOTO), data_uri(10, 10, RED), face_landmarks))


def test_only_2d_context():
    canvas = Canvas(10, 10)
    assert canvas.get_context("webgl") is None
    assert canvas.get_context("2d") is canvas.get_context()


def test_bad_template_reports_source(data_uri, face_landmarks):
    bad = "https-not-a-scheme/missing-template.png"
    with pytest.raises(ImageLoadFailure) as info:
        asyncio.run(RenderPipeline(ImageCache()).render_preview(
            Canvas(200, 150), data_uri(10, 10, PHOTO), bad, face_landmarks))
    assert info.value.src == bad


def test_short_landmarks_fail_before_loading(data_uri, landmarks_factory):
    fetcher = GatedFetcher()
    pipeline = RenderPipeline(ImageCache(fetcher))
    with pytest.raises(InvalidLandmarks):
        asyncio.run(pipeline.render_preview(
            Canvas(200, 150), data_uri(10, 10, PHOTO), data_uri(10, 10, RED), landmarks_factory(count=3)))
    assert len(pipeline.cache) == 0


def test_unexpected_error_becomes_render_failure(monkeypatch, data_uri, face_landmarks):
    def boom(*args, **kwargs):
        raise ZeroDivisionError("boom")

    monkeypatch.setattr(render, "calculate_overlay_position", boom)
    with pytest.raises(RenderFailure) as info:
        asyncio.run(RenderPipeline(ImageCache()).render_preview(
            Canvas(200, 150), data_uri(10, 10, PHOTO), data_uri(10, 10, RED), face_landmarks))
    assert info.value.recoverable is True
    assert isinstance(info.value.__cause__, ZeroDivisionError)


def test_to_blob_is_png_and_read_only(data_uri, face_landmarks):
    canvas = Canvas(200, 150)

    async def run():
        await RenderPipeline(ImageCache()).render_preview(
            canvas, data_uri(100, 80, PHOTO), data_uri(40, 40, RED), face_landmarks)
        before = canvas.pixels.copy()
        blob = await canvas.to_blob()
        return before, blob

    before, blob = asyncio.run(run())
    assert blob[:8] == b"\x89PNG\r\n\x1a\n"
    decoded = cv2.imdecode(np.frombuffer(blob, np.uint8), cv2.IMREAD_UNCHANGED)
    assert decoded.shape == (150, 200, 4)
    assert np.array_equal(canvas.pixels, before)
    assert np.array_equal(cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA), before)


def test_to_blob_before_render():
    with pytest.raises(RenderFailure):
        asyncio.run(Canvas(10, 10).to_blob())


def test_render_png(data_uri, face_landmarks):
    blob = asyncio.run(RenderPipeline(ImageCache()).render_png(
        data_uri(100, 80, PHOTO), data_uri(40, 40, RED), face_landmarks, 200, 150, 1.5))
    decoded = cv2.imdecode(np.frombuffer(blob, np.uint8), cv2.IMREAD_UNCHANGED)
    assert decoded.shape[:2] == (225, 300)


@pytest.mark.parametrize("size,dpr", [((100, 80), 1.0), ((100, 80), 2.0), ((333, 271), 1.0)])
def test_photo_fills_canvas_to_the_edges(data_uri, face_landmarks, size, dpr):
    canvas = Canvas(200, 150, device_pixel_ratio=dpr)
    asyncio.run(RenderPipeline(ImageCache()).render_preview(
        canvas, data_uri(size[0], size[1], PHOTO), data_uri(4, 4, (0, 0, 0, 0)), face_landmarks))
    assert (canvas.pixels[..., 3] == 255).all()
    assert _rgb(canvas, -1, -1) == PHOTO[:3]
    assert _rgb(canvas, 0, -1) == PHOTO[:3]
    assert _rgb(canvas, -1, 0) == PHOTO[:3]


def test_image_does_not_bleed_outside_its_rect():
    canvas = Canvas(20, 20)
    canvas.set_size(20, 20)
    ctx = canvas.get_context()
    tile = np.zeros((2, 2, 4), dtype=np.uint8)
    tile[...] = RED
    ctx.draw_image(tile, 5, 5, 10, 10)
    alpha = canvas.pixels[..., 3]
    assert (alpha[5:15, 5:15] == 255).all()
    assert alpha[:5].sum() == 0 and alpha[15:].sum() == 0
    assert alpha[:, :5].sum() == 0 and alpha[:, 15:].sum() == 0


def test_user_photos_are_not_cached(data_uri, face_landmarks):
    pipeline = RenderPipeline(ImageCache())
    template = data_uri(10, 10, RED)

    async def run():
        for i in range(4):
            await pipeline.render_preview(Canvas(50, 50), data_uri(10, 10, (i, 200, 30, 255)), template, face_landmarks)

    asyncio.run(run())
    assert len(pipeline.cache) == 1
    assert template in pipeline.cache
