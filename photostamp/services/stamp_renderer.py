from __future__ import annotations

import logging
from functools import lru_cache
from io import BytesIO
from typing import Callable, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from photostamp.errors import CanvasUnavailable, ImageDecodeFailed
from photostamp.models import StampedImage
from photostamp.services.image_utils import apply_orientation

logger = logging.getLogger(__name__)

FILL_COLOR = "#FF8C00"
STROKE_COLOR = "black"
MIN_BASE_FONT_SIZE = 12
MIN_FONT_SIZE = 10
JPEG_QUALITY = 90

# Faces with Japanese glyphs first (bold where the system has one), then a
# Latin-only bold face.
# Bare file names are looked up in the system font directories.
FONT_CANDIDATES = (
	"NotoSansCJK-Bold.ttc",
	"NotoSansCJKjp-Bold.otf",
	"NotoSansJP-Bold.ttf",
	"NotoSansJP-Bold.otf",
	"/System/Library/Fonts/ヒラギノ角ゴシック W6.ttc",
	"YuGothB.ttc",
	"meiryob.ttc",
	"ipaexg.ttf",
	"DejaVuSans-Bold.ttf",
)

# Plane 16 private use; no font maps it, so it renders as the missing-glyph box.
_UNMAPPED_CHAR = "\U0010fffd"
_COVERAGE_SIZE = 32


def _glyph_key(font: ImageFont.FreeTypeFont, ch: str) -> Tuple[Tuple[int, int], bytes]:
	mask = font.getmask(ch)
	return mask.size, bytes(mask)


def font_covers(font: ImageFont.FreeTypeFont, text: str) -> bool:
	"""True when every visible character of ``text`` has a real glyph in ``font``."""
	missing = _glyph_key(font, _UNMAPPED_CHAR)
	return all(_glyph_key(font, ch) != missing for ch in set(text) if not ch.isspace())


@lru_cache(maxsize=64)
def _truetype(path: str, size: int) -> ImageFont.FreeTypeFont:
	return ImageFont.truetype(path, size)


@lru_cache(maxsize=None)
def _installed(path: str) -> bool:
	try:
		_truetype(path, _COVERAGE_SIZE)
	except OSError:
		logger.debug("Font %s not available", path)
		return False
	return True


def _sized_font(path: Optional[str], size: int) -> ImageFont.FreeTypeFont:
	return _truetype(path, size) if path else ImageFont.load_default(size=size)


def fit_font_size(
	text: str,
	canvas_width: int,
	canvas_height: int,
	measure: Callable[[str, int], float],
) -> Tuple[int, float]:
	"""Pick a font size for ``text`` and the padding used around it.

	Starts from 1/28 of the shorter side rounded down to whole pixels (never
	below 12px) and shrinks one pixel at a time while the text overflows,
	stopping at 10px. Padding is fixed from the starting size.
	"""
	font_size = max(MIN_BASE_FONT_SIZE, min(canvas_width, canvas_height) // 28)
	padding = font_size * 0.8
	available = canvas_width - padding * 2
	while measure(text, font_size) > available and font_size > MIN_FONT_SIZE:
		font_size -= 1
	return font_size, padding


def stroke_width(font_size: int) -> int:
	return max(1, font_size // 12)


def decode_image(image_bytes: bytes) -> Image.Image:
	try:
		img = Image.open(BytesIO(image_bytes))
		img.load()
	except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
		raise ImageDecodeFailed(f"Failed to load the image file: {e}") from e
	return img


class StampRenderer:
	def __init__(self, font_path: Optional[str] = None, candidates: Sequence[str] = FONT_CANDIDATES):
		self.font_path = font_path
		self.candidates = tuple(c for c in (font_path, *candidates) if c)

	def font_path_for(self, text: str) -> Optional[str]:
		"""First loadable candidate that has glyphs for ``text``.

		Falls back to the first loadable candidate when none covers it, and to
		None when no candidate loads at all.
		"""
		first_loadable = None
		for candidate in self.candidates:
			if not _installed(candidate):
				continue
			if font_covers(_truetype(candidate, _COVERAGE_SIZE), text):
				return candidate
			first_loadable = first_loadable or candidate
		if first_loadable:
			logger.warning("No installed font has glyphs for %r; using %s", text, first_loadable)
		else:
			logger.warning("None of the stamp fonts are installed; using Pillow's built-in font")
		return first_loadable

	def load_font(self, size: int, text: str = "") -> ImageFont.FreeTypeFont:
		return _sized_font(self.font_path_for(text), size)

	def render(self, image: Image.Image, orientation: int, text: str) -> StampedImage:
		try:
			canvas = apply_orientation(image, orientation)
			if canvas.mode != "RGB":
				canvas = canvas.convert("RGB")
		except (MemoryError, ValueError, Image.DecompressionBombError) as e:
			raise CanvasUnavailable(f"Could not get a drawing surface: {e}") from e

		path = self.font_path_for(text)

		width, height = canvas.size
		font_size, padding = fit_font_size(
			text, width, height, lambda stamp, size: _sized_font(path, size).getlength(stamp)
		)
		font = _sized_font(path, font_size)

		draw = ImageDraw.Draw(canvas)
		draw.text(
			(width - padding, height - padding),
			text,
			font=font,
			fill=FILL_COLOR,
			anchor="rb",
			stroke_width=stroke_width(font_size),
			stroke_fill=STROKE_COLOR,
		)

		out = BytesIO()
		canvas.save(out, format="JPEG", quality=JPEG_QUALITY)
		logger.debug("Stamped %dx%d image at %dpx: %r", width, height, font_size, text)
		return StampedImage(data=out.getvalue(), text=text, width=width, height=height)
