"""Wiki Heat: controversy heat scores from Wikipedia edit history."""

__version__ = "0.1.0"
