"""
Exceptions raised by the decompression model.
"""


class InvalidProfileError(ValueError):
    """Profile cannot be walked (too few waypoints, bad ordering, negative values)."""
