# tests/__init__.py
"""
Expose common test utilities so tests can import directly:
    from tests import make_lot, make_image_urls, lots_response
"""

from .utils import lot_payload, lots_response, make_image_set, make_image_urls, make_lot

__all__ = ["make_image_urls", "make_image_set", "make_lot", "lot_payload", "lots_response"]
