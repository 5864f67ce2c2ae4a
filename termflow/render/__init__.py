"""Progressive chunked and paginated rendering."""

from .progressive import ProgressiveRenderer, RendererStats

__all__ = ["ProgressiveRenderer", "RendererStats"]
