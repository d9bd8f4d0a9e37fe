from .heatmap import (
    DEFAULT_BRUSH_SIZE,
    encode_png,
    load_image,
    radial_brush,
    render_heatmap,
    render_png,
)

__all__ = [
    "DEFAULT_BRUSH_SIZE",
    "encode_png",
    "load_image",
    "radial_brush",
    "render_heatmap",
    "render_png",
]
