import io
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import numpy as np
from PIL import Image

from ..errors import RenderError
from ..models import Frame

logger = logging.getLogger(__name__)

DEFAULT_BRUSH_SIZE = 100


# --- Image I/O ---

def load_image(path: Union[str, Path]) -> np.ndarray:
    """
    Loads an image file as an (H, W, 4) uint8 RGBA array.

    Raises:
        RenderError: the file is missing or is not a decodable image.
    """
    try:
        with Image.open(path) as img:
            return np.array(img.convert("RGBA"), dtype=np.uint8)
    except (OSError, ValueError) as e:
        raise RenderError(f"Cannot load image '{path}': {e}") from e


def encode_png(rgba: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(rgba)).save(buf, format="PNG")
    return buf.getvalue()


def radial_brush(
    size: int = DEFAULT_BRUSH_SIZE,
    color: tuple[int, int, int] = (255, 0, 0),
    max_alpha: float = 0.1,
) -> np.ndarray:
    """A soft round brush whose alpha falls off linearly from the centre."""
    if size <= 0:
        raise ValueError("size must be positive.")
    axis = np.linspace(-1.0, 1.0, size, dtype=np.float32)
    xx, yy = np.meshgrid(axis, axis)
    falloff = np.clip(1.0 - np.sqrt(xx * xx + yy * yy), 0.0, 1.0)

    brush = np.zeros((size, size, 4), dtype=np.uint8)
    brush[..., :3] = color
    brush[..., 3] = np.round(falloff * max_alpha * 255.0).astype(np.uint8)
    return brush


# --- Compositing ---

def _premultiply(rgba: np.ndarray) -> np.ndarray:
    if rgba.ndim != 3 or rgba.shape[2] != 4:
        raise RenderError(f"Expected an RGBA image, got array of shape {rgba.shape}.")
    out = rgba.astype(np.float32) / 255.0
    out[..., :3] *= out[..., 3:4]
    return out


def _blit_over(dst: np.ndarray, src: np.ndarray, x0: int, y0: int) -> None:
    """Source-over composites premultiplied `src` onto `dst` at (x0, y0), clipped to `dst`."""
    src_h, src_w = src.shape[:2]
    dst_h, dst_w = dst.shape[:2]

    left, top = max(x0, 0), max(y0, 0)
    right, bottom = min(x0 + src_w, dst_w), min(y0 + src_h, dst_h)
    if left >= right or top >= bottom:
        return

    s = src[top - y0:bottom - y0, left - x0:right - x0]
    d = dst[top:bottom, left:right]
    d *= 1.0 - s[..., 3:4]
    d += s


def _to_straight_rgba(canvas: np.ndarray) -> np.ndarray:
    alpha = canvas[..., 3:4]
    rgb = np.divide(
        canvas[..., :3], alpha, out=np.zeros_like(canvas[..., :3]), where=alpha > 0
    )
    out = np.concatenate([rgb, alpha], axis=-1)
    return np.round(np.clip(out, 0.0, 1.0) * 255.0).astype(np.uint8)


# --- Rendering ---

def render_heatmap(
    frames: Iterable[Frame],
    width: int,
    height: int,
    brush: np.ndarray,
    cutoff_s: Optional[float] = None,
    start_time: Optional[float] = None,
    background: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Stamps `brush` at every valid gaze point and returns the RGBA result.

    Overlapping stamps accumulate through repeated source-over blending, so
    places looked at more often come out more saturated.

    Args:
        frames: Frames in chronological order. No-gaze sentinels are skipped.
        width: Canvas width in pixels.
        height: Canvas height in pixels.
        brush: RGBA brush image, centred on each gaze point.
        cutoff_s: Only frames that arrived within this many seconds of
            `start_time` are drawn. None or negative disables the cutoff.
        start_time: Reference for `cutoff_s` (epoch seconds). Defaults to
            the arrival time of the first frame.
        background: Optional RGBA image drawn unscaled at the origin
            underneath the heat-map.

    Returns:
        An (height, width, 4) uint8 array with straight (non-premultiplied) alpha.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid canvas size {width}x{height}.")

    frames = list(frames)
    src = _premultiply(brush)
    brush_h, brush_w = src.shape[:2]

    if start_time is None and frames:
        start_time = frames[0].received_at
    use_cutoff = cutoff_s is not None and cutoff_s >= 0

    canvas = np.zeros((height, width, 4), dtype=np.float32)
    stamped = 0
    for frame in frames:
        if not frame.has_gaze:
            continue
        if use_cutoff and frame.received_at - start_time > cutoff_s:
            continue

        x0 = int(frame.avg.x - brush_w / 2.0)
        y0 = int(frame.avg.y - brush_h / 2.0)
        _blit_over(canvas, src, x0, y0)
        stamped += 1

    if background is not None:
        base = np.zeros_like(canvas)
        _blit_over(base, _premultiply(background), 0, 0)
        _blit_over(base, canvas, 0, 0)
        canvas = base

    logger.debug(f"Heat-map rendered: {stamped} of {len(frames)} frames stamped.")
    return _to_straight_rgba(canvas)


def render_png(
    frames: Iterable[Frame],
    width: int,
    height: int,
    brush: np.ndarray,
    cutoff_s: Optional[float] = None,
    start_time: Optional[float] = None,
    background: Optional[np.ndarray] = None,
) -> bytes:
    """`render_heatmap()` encoded as PNG."""
    rgba = render_heatmap(frames, width, height, brush, cutoff_s, start_time, background)
    return encode_png(rgba)
