"""Label measurement and greedy word wrapping."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from PIL import ImageFont

logger = logging.getLogger(__name__)

DEFAULT_FONT_FAMILY = "sans-serif"
DEFAULT_FONT_SIZE = 11.0
GENERIC_FONT_FALLBACKS = {
    "sans-serif": ["Helvetica", "Arial", "Liberation Sans", "DejaVu Sans", "Noto Sans"],
    "serif": ["Times New Roman", "Times", "Liberation Serif", "DejaVu Serif"],
    "monospace": ["Courier New", "Courier", "Liberation Mono", "DejaVu Sans Mono"],
}

Measure = Callable[[str], float]


def wrap(text: str, max_width: float, measure: Measure) -> List[str]:
    """Greedily pack words into lines no wider than ``max_width``.

    Words are never split. A word that alone exceeds ``max_width`` gets a
    line of its own.
    """
    words = text.split()
    lines: List[str] = []
    current: List[str] = []
    for word in words:
        candidate = " ".join(current + [word])
        if not current or measure(candidate) <= max_width:
            current.append(word)
            continue
        lines.append(" ".join(current))
        current = [word]
    if current:
        lines.append(" ".join(current))
    return lines or [""]


class FontMeasurer:
    """Caches Pillow fonts and exposes width/line height helpers."""

    FONT_DIRS = [
        Path("/System/Library/Fonts"),
        Path("/System/Library/Fonts/Supplemental"),
        Path("/Library/Fonts"),
        Path("~/Library/Fonts").expanduser(),
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("C:/Windows/Fonts"),
    ]

    def __init__(self, family: str = DEFAULT_FONT_FAMILY, font_path: Optional[str] = None) -> None:
        self.family = family
        self.font_path = font_path
        self._font_cache: Dict[int, Optional[ImageFont.ImageFont]] = {}
        self._font_paths: Dict[str, Optional[str]] = {}

    def font(self, size: float) -> Optional[ImageFont.ImageFont]:
        key_size = max(1, int(round(size)))
        if key_size in self._font_cache:
            return self._font_cache[key_size]

        candidates: List[str] = []
        if self.font_path:
            candidates.append(self.font_path)
        for fam in GENERIC_FONT_FALLBACKS.get(self.family.lower(), [self.family]):
            resolved = self._locate_font(fam)
            if resolved:
                candidates.append(resolved)
        candidates.append("DejaVuSans.ttf")

        font: Optional[ImageFont.ImageFont] = None
        for candidate in candidates:
            try:
                font = ImageFont.truetype(candidate, key_size)
                break
            except OSError:
                continue
        if font is None:
            logger.debug("no truetype font for %r; using heuristic widths", self.family)

        self._font_cache[key_size] = font
        return font

    def measure(self, text: str, size: float = DEFAULT_FONT_SIZE) -> float:
        font = self.font(size)
        if font is None:
            return heuristic_width(text, size)
        return float(font.getlength(text))

    def line_height(self, size: float = DEFAULT_FONT_SIZE) -> float:
        font = self.font(size)
        if font is None:
            return 1.1 * size
        ascent, descent = font.getmetrics()
        return float(ascent + descent)

    def metric(self, size: float = DEFAULT_FONT_SIZE) -> Measure:
        """Bind a font size, giving a one-argument metric for :func:`wrap`."""
        return lambda text: self.measure(text, size)

    def _locate_font(self, family: str) -> Optional[str]:
        key = family.lower()
        if key in self._font_paths:
            return self._font_paths[key]
        normalized = re.sub(r"[^a-z0-9]+", "", family, flags=re.IGNORECASE).lower()
        best_match: Optional[Tuple[int, str]] = None
        for directory in self.FONT_DIRS:
            if not normalized or not directory.exists():
                continue
            try:
                for path in directory.rglob("*.ttf"):
                    stem = re.sub(r"[^a-z0-9]+", "", path.stem, flags=re.IGNORECASE).lower()
                    if stem == normalized:
                        score = 0
                    elif stem.startswith(normalized):
                        score = 1
                    else:
                        continue
                    if best_match is None or score < best_match[0]:
                        best_match = (score, str(path))
            except OSError:
                continue
        resolved = best_match[1] if best_match else None
        self._font_paths[key] = resolved
        return resolved


def heuristic_width(text: str, font_size: float) -> float:
    width = 0.0
    for ch in text:
        if ch.isspace():
            width += font_size * 0.33
        elif ch in "il":
            width += font_size * 0.3
        elif ch in "mwMW@#":
            width += font_size * 0.9
        elif ord(ch) > 0x2E7F:
            # CJK and other full-width glyphs
            width += font_size
        else:
            width += font_size * 0.6
    return width


__all__ = ["wrap", "FontMeasurer", "heuristic_width", "Measure", "DEFAULT_FONT_SIZE"]
