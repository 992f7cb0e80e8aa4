"""fetcharr - release acquisition decision engine."""

__version__ = "0.1.0"
