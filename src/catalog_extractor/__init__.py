"""Product catalog extraction from PDF pages via multimodal inference."""

__version__ = "0.1.0"
