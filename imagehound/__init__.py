"""imagehound -- hunt CDN edges for an unfiltered copy of an image."""

__version__ = "0.1.0"
