"""
Offline heat-map generation from a recorded log file.

The log interleaves frame messages with page-visit records. Each visit
record starts a new page session; every frame that follows belongs to that
page until the next visit. For every page a set of heat-maps is rendered,
each limited to the first N seconds of the visit, and an `index.html`
overview links them all.
"""
import html
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence

import numpy as np
from pydantic import ValidationError

from .models import Frame
from .protocol import FrameLogRecord
from .render import encode_png, load_image, render_heatmap
from .sinks import PageVisit

logger = logging.getLogger(__name__)

UNKNOWN_URL = "UNKNOWN URL"
DEFAULT_CUTOFFS_S = (-1, 5, 10, 15)
VISIT_MARKER = "request path"


@dataclass
class PageLog:
    url: str = UNKNOWN_URL
    unix_time: int = 0
    frames: list[Frame] = field(default_factory=list)
    image_files: list[str] = field(default_factory=list)

    @property
    def start_time(self) -> Optional[float]:
        """Reference time for the cutoffs: the visit time, else the first frame's arrival."""
        if self.unix_time > 0:
            return float(self.unix_time)
        if self.frames:
            return self.frames[0].received_at
        return None


def parse_log(lines: Iterable[str]) -> list[PageLog]:
    """
    Splits log lines into page sessions.

    Frames logged before the first visit record go to an `UNKNOWN URL`
    page. Pages without frames are kept so the overview still lists them.
    """
    pages: list[PageLog] = []
    current = PageLog()

    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue

        try:
            if VISIT_MARKER in line:
                visit = PageVisit.model_validate_json(line)
                pages.append(current)
                current = PageLog(url=visit.request_path, unix_time=visit.unix_time)
                continue

            record = FrameLogRecord.model_validate_json(line)
        except ValidationError as e:
            logger.warning(f"Skipping undecodable log line {lineno}: {e.error_count()} errors")
            continue

        if record.frame is None:
            logger.warning(f"Skipping log line {lineno}: no frame.")
            continue
        current.frames.append(record.frame.to_frame(record.received_at))

    pages.append(current)
    return pages


def load_image_map(path: Path) -> dict[str, str]:
    """Reads the `{url: background_png}` map. Missing or broken files give an empty map."""
    path = Path(path)
    if not path.exists():
        logger.info(f"No image config at '{path}', rendering without backgrounds.")
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Cannot read image config '{path}': {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Image config '{path}' is not a JSON object, ignoring it.")
        return {}
    return {str(k): str(v) for k, v in data.items()}


def _write_png(path: Path, rgba: np.ndarray) -> None:
    path.write_bytes(encode_png(rgba))


def render_page_set(
    page: PageLog,
    output_dir: Path,
    base_name: str,
    brush: np.ndarray,
    width: int,
    height: int,
    cutoffs_s: Sequence[int] = DEFAULT_CUTOFFS_S,
    background: Optional[np.ndarray] = None,
) -> list[str]:
    """
    Writes `{base}_{n}sec.png` for each cutoff, plus `{base}_bg_{n}sec.png`
    when a background is given, and records the file names on the page.
    """
    start_time = page.start_time
    for cutoff in cutoffs_s:
        cutoff_s = None if cutoff < 0 else cutoff
        heat = render_heatmap(page.frames, width, height, brush, cutoff_s, start_time)

        name = f"{base_name}_{cutoff}sec.png"
        logger.info(f"  creating image {name} ({page.url})...")
        _write_png(output_dir / name, heat)
        page.image_files.append(name)

        if background is not None:
            combined = render_heatmap(
                page.frames, width, height, brush, cutoff_s, start_time, background
            )
            bg_name = f"{base_name}_bg_{cutoff}sec.png"
            _write_png(output_dir / bg_name, combined)
            page.image_files.append(bg_name)

    return page.image_files


def write_index(pages: Sequence[PageLog], output_dir: Path, title: Optional[str] = None) -> Path:
    title = title or output_dir.name
    parts = [f"<html><head><title>heatmap: {html.escape(title)}</title></head><body>"]
    for page in pages:
        parts.append(f"<hr>{html.escape(page.url)}<br>")
        for name in page.image_files:
            src = html.escape(name, quote=True)
            parts.append(f'<a href="{src}"><img src="{src}" width="100"></a> ')
    parts.append("</body></html>")

    index_path = output_dir / "index.html"
    index_path.write_text("".join(parts), encoding="utf-8")
    return index_path


def default_output_dir() -> Path:
    return Path(time.strftime("%Y%m%d_%H%M%S"))


def replay_log(
    log_path: Path,
    output_dir: Path,
    brush: np.ndarray,
    image_config_path: Optional[Path] = None,
    width: int = 1920,
    height: int = 1080,
    cutoffs_s: Sequence[int] = DEFAULT_CUTOFFS_S,
) -> list[PageLog]:
    """
    Renders heat-map image sets for every page in a log file.

    Raises:
        OSError: the log file cannot be read or the output cannot be written.
        RenderError: a configured background image cannot be loaded.
    """
    log_path, output_dir = Path(log_path), Path(output_dir)
    with log_path.open(encoding="utf-8") as f:
        pages = parse_log(f)

    image_map = load_image_map(image_config_path) if image_config_path else {}
    output_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Log loaded. {len(pages)} pages in data, writing heat-maps to '{output_dir}'.")

    for i, page in enumerate(pages):
        background = None
        if page.url in image_map:
            background = load_image(image_map[page.url])
        render_page_set(page, output_dir, str(i), brush, width, height, cutoffs_s, background)

    write_index(pages, output_dir)
    logger.info("Replay done.")
    return pages
