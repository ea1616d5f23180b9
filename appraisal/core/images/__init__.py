# appraisal/core/images/__init__.py
from .fetcher import EncodedImage, fetch_image, shrink_image
from .resolver import resolve_image_set, resolve_indexes

__all__ = [
    "EncodedImage",
    "fetch_image",
    "shrink_image",
    "resolve_image_set",
    "resolve_indexes",
]
