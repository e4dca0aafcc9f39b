"""
Validation errors raised by the pixelclean engine.
"""


class InvalidGridSizeError(ValueError):
    """Grid size is below 1 or too large to yield any logical pixel."""


class PaletteIndexError(IndexError):
    """A palette index lies outside [0, len(palette))."""
