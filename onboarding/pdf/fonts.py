"""
Font lookup and text drawing shared by field rendering and signature stamping.
"""
import logging
import os
from typing import Optional, Tuple, Union

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)

# Fonts with broad Latin coverage; falls back to built-in Helvetica
FONT_PATHS = {
    "regular": [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    ],
    "italic": [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Oblique.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSansOblique.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Italic.ttf",
    ],
}
FALLBACK_FONTNAME = "helv"


def find_font(style: str = "regular") -> Optional[str]:
    """Find a TTF font; None means the built-in Helvetica is used."""
    for path in FONT_PATHS.get(style, FONT_PATHS["regular"]):
        if os.path.exists(path):
            return path
    return None


def draw_text(
    page: fitz.Page,
    point: Union[fitz.Point, Tuple[float, float]],
    text: str,
    size: float,
    style: str = "regular",
) -> None:
    font_path = find_font(style)
    if font_path:
        try:
            page.insert_text(point, text, fontname=f"onb{style}", fontfile=font_path, fontsize=size, color=(0, 0, 0))
            return
        except Exception as e:
            logger.warning(f"Font {font_path} failed: {e}")
    page.insert_text(point, text, fontname=FALLBACK_FONTNAME, fontsize=size, color=(0, 0, 0))
