"""
Wayquest Backend - Maps Integration Module
Provides landmark lookup for quest placement
"""

from integrations.maps.overpass_client import (
    BaseLandmarkLookup,
    NullLandmarkLookup,
    OverpassClient,
    overpass_client,
)

__all__ = [
    "BaseLandmarkLookup",
    "NullLandmarkLookup",
    "OverpassClient",
    "overpass_client",
]
