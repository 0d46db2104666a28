"""Heightfield and water simulation for an augmented-reality sandbox."""

__version__ = "0.1.0"
