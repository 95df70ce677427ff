"""
=============================================================================
HANDLERS
=============================================================================

Terminal request handlers. A handler receives a request that has already
passed every middleware gate and returns the response for it.

There is one kind: AssetHandler, which serves a single asset from a
ContentSource according to an AssetDescriptor.

=============================================================================
"""

from .assets import (
    IMAGE,
    IMMUTABLE_CACHE,
    INDEX,
    ROBOTS,
    SMALL_IMAGE,
    AssetDescriptor,
    AssetHandler,
)

__all__ = [
    "AssetDescriptor",
    "AssetHandler",
    "IMMUTABLE_CACHE",
    "INDEX",
    "IMAGE",
    "SMALL_IMAGE",
    "ROBOTS",
]
