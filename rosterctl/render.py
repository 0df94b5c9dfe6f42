"""
Table rendering — header + rows to a PNG image.

Only the first ``max_columns`` columns (12 by default) are drawn.
"""

from __future__ import annotations

import io
import logging
from typing import Sequence

from PIL import Image, ImageDraw, ImageFont

from rosterctl.types import RosterError

logger = logging.getLogger(__name__)

MAX_COLUMNS = 12
PADDING = 8
MARGIN = 20

_HEADER_BG = "#f2f2f2"
_STRIPE_BG = "#f9f9f9"
_BORDER = "#dddddd"


class RenderError(RosterError):
    """The result table could not be drawn."""


def render_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    max_columns: int = MAX_COLUMNS,
) -> bytes:
    """Render a bordered table and return PNG bytes."""
    try:
        headers = [str(h) for h in headers[:max_columns]]
        body = [[str(c or "") for c in r[:max_columns]] for r in rows]
        body = [r + [""] * (len(headers) - len(r)) for r in body]

        font = ImageFont.load_default()
        probe = ImageDraw.Draw(Image.new("RGB", (1, 1)))

        def text_size(s: str):
            left, top, right, bottom = probe.textbbox((0, 0), s, font=font)
            return right - left, bottom - top

        line_h = max(text_size("Ag")[1], 1)
        widths = [text_size(h)[0] for h in headers]
        for r in body:
            for i, cell in enumerate(r):
                widths[i] = max(widths[i], text_size(cell)[0])
        col_w = [w + 2 * PADDING for w in widths]
        row_h = line_h + 2 * PADDING

        width = sum(col_w) + 2 * MARGIN + 1
        height = row_h * (len(body) + 1) + 2 * MARGIN + 1
        img = Image.new("RGB", (width, height), "white")
        draw = ImageDraw.Draw(img)

        for r_idx, cells in enumerate([headers] + body):
            y = MARGIN + r_idx * row_h
            if r_idx == 0:
                fill = _HEADER_BG
            elif r_idx % 2 == 0:
                fill = _STRIPE_BG
            else:
                fill = "white"
            x = MARGIN
            for c_idx, cell in enumerate(cells):
                draw.rectangle(
                    [x, y, x + col_w[c_idx], y + row_h], fill=fill, outline=_BORDER,
                )
                draw.text((x + PADDING, y + PADDING), cell, fill="black", font=font)
                x += col_w[c_idx]

        buf = io.BytesIO()
        img.save(buf, format="PNG")
    except Exception as e:
        raise RenderError(f"Failed to render table: {e}") from e
    logger.debug("Rendered %d row(s) x %d column(s)", len(body), len(headers))
    return buf.getvalue()
