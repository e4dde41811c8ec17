"""Music Blend - merge several listeners' history into one playlist."""

__version__ = "0.1.0"
