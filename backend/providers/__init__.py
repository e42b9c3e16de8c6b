"""
Price Providers
Clients for upstream market-data APIs.
"""

from .birdeye import BirdeyeClient, get_birdeye_client

__all__ = ["BirdeyeClient", "get_birdeye_client"]
