from __future__ import annotations


class PhotoStampError(Exception):
	"""Base exception for the application."""


class MetadataMissing(PhotoStampError):
	"""Raised when the image carries no parseable EXIF tag directory."""


class CoordinateMissing(PhotoStampError):
	"""Raised when EXIF tags are present but hold no GPS position."""


class ResolutionFailed(PhotoStampError):
	"""Raised when a coordinate cannot be turned into a place name."""


class ImageDecodeFailed(PhotoStampError):
	"""Raised when the source bytes cannot be decoded as a raster image."""


class CanvasUnavailable(PhotoStampError):
	"""Raised when the drawing surface cannot be allocated."""


class InvalidTransition(PhotoStampError):
	"""Raised when a task event is not allowed in its current state."""


class PlaceNotFound(ResolutionFailed):
	"""Raised when the providers answered but no place name could be composed."""
