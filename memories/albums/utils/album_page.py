# albums/utils/album_page.py
"""
Printable album page rendering.

A page carries a still frame of the uploaded video, the event title and
subtitle, the album heading, a "scan me" caption, an optional QR code, and
four corner tracking marks. The marks differ per corner so the page has no
rotational symmetry and give the detector strong features even when the
video still is flat.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageDraw, ImageFont, ImageOps

from .qr import make_qr_image

logger = logging.getLogger(__name__)

# 3x3 cell patterns for the corner marks (1 = black), clockwise from top-left
CORNER_PATTERNS = (
    ((1, 1, 1), (1, 0, 1), (1, 1, 1)),
    ((1, 1, 1), (0, 1, 0), (1, 0, 1)),
    ((1, 0, 1), (1, 1, 1), (0, 1, 1)),
    ((1, 1, 0), (1, 0, 1), (0, 1, 1)),
)


@dataclass
class AlbumPageLayout:
    """A4 portrait at 150 DPI by default"""
    width: int = 1240
    height: int = 1754
    dpi: int = 150
    margin: int = 70
    mark_size: int = 96
    frame_border: int = 14
    qr_size: int = 260
    background: Tuple[int, int, int] = (255, 255, 255)
    ink: Tuple[int, int, int] = (25, 25, 35)
    accent: Tuple[int, int, int] = (120, 60, 160)
    muted: Tuple[int, int, int] = (110, 110, 120)


def _font(size: int, bold: bool = False):
    names = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf") if bold else ("DejaVuSans.ttf", "Arial.ttf")
    for name in names:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        # Pillow < 10.1 only has the fixed-size bitmap font
        return ImageFont.load_default()


def _fit_font(draw: ImageDraw.ImageDraw, text: str, max_width: int, size: int,
              bold: bool = False, min_size: int = 18):
    font = _font(size, bold)
    while size > min_size and draw.textlength(text, font=font) > max_width:
        size -= 4
        font = _font(size, bold)
    return font


def _centered_text(draw, y: int, text: str, font, fill, page_width: int) -> int:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = (page_width - (right - left)) // 2
    draw.text((x, y), text, font=font, fill=fill)
    return y + (bottom - top)


def _draw_corner_mark(draw: ImageDraw.ImageDraw, x: int, y: int, size: int, pattern, ink):
    draw.rectangle([x, y, x + size - 1, y + size - 1], fill=ink)
    inner = size // 6
    cell = (size - 2 * inner) // 3
    for row, bits in enumerate(pattern):
        for col, bit in enumerate(bits):
            if bit:
                continue
            cx = x + inner + col * cell
            cy = y + inner + row * cell
            draw.rectangle([cx, cy, cx + cell - 1, cy + cell - 1], fill=(255, 255, 255))


def bgr_to_pil(frame: np.ndarray) -> Image.Image:
    if frame.ndim == 2:
        return Image.fromarray(frame).convert('RGB')
    return Image.fromarray(np.ascontiguousarray(frame[:, :, 2::-1]))


def pil_to_bgr(image: Image.Image) -> np.ndarray:
    return np.ascontiguousarray(np.array(image.convert('RGB'))[:, :, ::-1])


def render_album_page(frame: np.ndarray,
                      title: str,
                      subtitle: str = '',
                      album_name: str = 'School Memories Album',
                      caption: str = 'Scan this page with the Memories app to watch the video!',
                      qr_data: Optional[str] = None,
                      layout: Optional[AlbumPageLayout] = None) -> Tuple[Image.Image, List[float]]:
    """
    Compose a printable album page around a video still.

    Args:
        frame: BGR still frame from the video
        title: Event title, e.g. "Annual Day 2025"
        subtitle: Second line, e.g. "Class 5 Performance"
        album_name: Page heading
        caption: Instruction line under the still
        qr_data: Encoded in a QR code at the bottom when given
        layout: Page geometry and colours

    Returns:
        (page image, normalised [x0, y0, x1, y1] of the video still)
    """
    if frame is None or frame.size == 0:
        raise ValueError("Empty video frame")

    layout = layout or AlbumPageLayout()
    page = Image.new('RGB', (layout.width, layout.height), layout.background)
    draw = ImageDraw.Draw(page)

    m, s = layout.margin, layout.mark_size
    mark_positions = (
        (m, m),
        (layout.width - m - s, m),
        (layout.width - m - s, layout.height - m - s),
        (m, layout.height - m - s),
    )
    for (x, y), pattern in zip(mark_positions, CORNER_PATTERNS):
        _draw_corner_mark(draw, x, y, s, pattern, layout.ink)

    content_width = layout.width - 2 * (m + s + 20)
    heading_font = _fit_font(draw, album_name, content_width, 64, bold=True)
    y = _centered_text(draw, m + s // 4, album_name, heading_font, layout.accent, layout.width)

    # Video still, framed
    still = bgr_to_pil(frame)
    box_w = layout.width - 2 * m
    aspect = still.height / still.width
    box_h = int(box_w * min(max(aspect, 0.45), 0.9))
    box_x = m
    box_y = max(y + 40, m + s + 30)
    border = layout.frame_border

    draw.rectangle([box_x - border, box_y - border, box_x + box_w + border - 1, box_y + box_h + border - 1],
                   fill=layout.ink)
    page.paste(ImageOps.fit(still, (box_w, box_h), Image.LANCZOS), (box_x, box_y))

    video_region = [
        box_x / layout.width,
        box_y / layout.height,
        (box_x + box_w) / layout.width,
        (box_y + box_h) / layout.height,
    ]

    y = box_y + box_h + border + 50
    title_font = _fit_font(draw, title, layout.width - 2 * m, 72, bold=True)
    y = _centered_text(draw, y, title, title_font, layout.ink, layout.width) + 24
    if subtitle:
        subtitle_font = _fit_font(draw, subtitle, layout.width - 2 * m, 44)
        y = _centered_text(draw, y, subtitle, subtitle_font, layout.muted, layout.width) + 24

    caption_font = _fit_font(draw, caption, layout.width - 2 * m, 32)
    y = _centered_text(draw, y + 10, caption, caption_font, layout.accent, layout.width) + 30

    if qr_data:
        bottom_limit = layout.height - m - s - 20
        qr_size = min(layout.qr_size, bottom_limit - y)
        if qr_size >= 120:
            qr_img = make_qr_image(qr_data, box_size=8, border=2).resize((qr_size, qr_size), Image.NEAREST)
            page.paste(qr_img, ((layout.width - qr_size) // 2, y))
        else:
            logger.warning(f"No room for QR code on album page '{title}'")

    return page, video_region


def make_target_image(page: Image.Image, max_side: int = 1024) -> Image.Image:
    """Downscale a page to the detector's working resolution"""
    target = page.convert('RGB')
    scale = max_side / max(target.size)
    if scale < 1.0:
        size = (max(1, round(target.width * scale)), max(1, round(target.height * scale)))
        target = target.resize(size, Image.LANCZOS)
    return target


def save_print_pdf(page: Image.Image, target: Union[str, Path, BinaryIO], dpi: int = 150):
    """Write a single-page print-ready PDF to a path or binary file object"""
    if isinstance(target, (str, Path)):
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
    page.convert('RGB').save(target, 'PDF', resolution=float(dpi))
    return target
