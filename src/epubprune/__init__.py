"""epubprune - batch page pruning for image-based EPUB archives."""

__version__ = "0.1.0"
