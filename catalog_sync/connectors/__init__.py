"""
Provider clients for the external data integration.
"""

from catalog_sync.connectors.base import BaseSourceClient
from catalog_sync.connectors.price_client import PriceTrackingClient, calculate_price_stats
from catalog_sync.connectors.specs_client import SpecificationsClient, parse_camera_spec

__all__ = [
    "BaseSourceClient",
    "PriceTrackingClient",
    "SpecificationsClient",
    "calculate_price_stats",
    "parse_camera_spec",
]
