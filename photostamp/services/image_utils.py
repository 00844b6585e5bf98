from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
from PIL import Image


@dataclass(frozen=True)
class OrientationTransform:
	"""Canvas-style affine ``(a, b, c, d, e, f)`` for one EXIF orientation.

	A source pixel ``(x, y)`` lands at ``(a*x + c*y + e, b*x + d*y + f)``.
	``e``/``f`` are multiples of the source width/height, given as
	``(k_w, k_h)`` pairs so the table stays independent of image size.
	"""
	orientation: int
	label: str
	linear: Tuple[int, int, int, int]
	e: Tuple[int, int]
	f: Tuple[int, int]
	swaps_axes: bool = False

	def coefficients(self, width: int, height: int) -> Tuple[int, int, int, int, int, int]:
		a, b, c, d = self.linear
		e = self.e[0] * width + self.e[1] * height
		f = self.f[0] * width + self.f[1] * height
		return a, b, c, d, e, f


ORIENTATION_TRANSFORMS: Dict[int, OrientationTransform] = {
	1: OrientationTransform(1, "identity", (1, 0, 0, 1), (0, 0), (0, 0)),
	2: OrientationTransform(2, "mirror horizontal", (-1, 0, 0, 1), (1, 0), (0, 0)),
	3: OrientationTransform(3, "rotate 180", (-1, 0, 0, -1), (1, 0), (0, 1)),
	4: OrientationTransform(4, "mirror vertical", (1, 0, 0, -1), (0, 0), (0, 1)),
	5: OrientationTransform(5, "transpose", (0, 1, 1, 0), (0, 0), (0, 0), swaps_axes=True),
	6: OrientationTransform(6, "rotate 90 cw", (0, 1, -1, 0), (0, 1), (0, 0), swaps_axes=True),
	7: OrientationTransform(7, "transverse", (0, -1, -1, 0), (0, 1), (1, 0), swaps_axes=True),
	8: OrientationTransform(8, "rotate 90 ccw", (0, -1, 1, 0), (0, 0), (1, 0), swaps_axes=True),
}


def orientation_transform(orientation: int) -> OrientationTransform:
	return ORIENTATION_TRANSFORMS.get(orientation, ORIENTATION_TRANSFORMS[1])


def canvas_size(orientation: int, width: int, height: int) -> Tuple[int, int]:
	if orientation_transform(orientation).swaps_axes:
		return height, width
	return width, height


def affine_matrix(orientation: int, width: int, height: int) -> np.ndarray:
	a, b, c, d, e, f = orientation_transform(orientation).coefficients(width, height)
	return np.array([[a, c, e], [b, d, f], [0, 0, 1]], dtype=np.float64)


def apply_orientation(img: Image.Image, orientation: int) -> Image.Image:
	"""Lay the stored pixels out the way the camera intended."""
	transform = orientation_transform(orientation)
	if transform.orientation == 1:
		return img.copy()
	size = canvas_size(orientation, img.width, img.height)
	# Pillow wants the output -> input mapping
	inverse = np.linalg.inv(affine_matrix(orientation, img.width, img.height))
	data = tuple(float(v) for v in inverse[:2].ravel())
	return img.transform(size, Image.Transform.AFFINE, data, resample=Image.Resampling.NEAREST)
