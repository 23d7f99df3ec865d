"""Handwritten digit recognition pipeline backed by a vision-language model."""

__version__ = "0.1.0"
