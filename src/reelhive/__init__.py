"""reelhive: multi-provider text-to-video generation with fallback routing."""

__version__ = "0.1.0"
