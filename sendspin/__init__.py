"""Sendspin protocol player building blocks: samples, clock sync, codecs, resampling, output helpers, messages, client and status view."""

__version__ = "0.1.0"

__all__ = [
    "samples",
    "clock",
    "resample",
    "codecs",
    "output",
    "messages",
    "client",
    "ui",
]