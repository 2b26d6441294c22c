"""Media and content normalization."""

from zapdesk.services.media.extractor import ContentExtractor

__all__ = ["ContentExtractor"]
