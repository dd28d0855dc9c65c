"""Unscroll: pick tonight's movie from your watchlist and keep a viewing diary."""

__version__ = "0.1.0"
