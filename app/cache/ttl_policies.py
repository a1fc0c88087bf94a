"""
TTL configuration per data category.
"""
from typing import Any, Dict, Optional, Tuple

from config.settings import Settings, settings as default_settings

from .core import DataCategory


def build_ttl_config(settings: Settings) -> Dict[DataCategory, Dict[str, Any]]:
    """
    Build the TTL table from settings (in seconds).

    ``stale_ttl`` is the absolute age up to which an entry may still be served
    when upstream fails. Zero means the category has no stale tier.
    """
    return {
        DataCategory.CAMERA_MANIFEST: {
            "fresh_ttl": settings.manifest_fresh_ttl_seconds,
            "stale_ttl": settings.manifest_stale_ttl_seconds,
        },
        DataCategory.CAMERA_NAMES: {
            "fresh_ttl": settings.names_fresh_ttl_seconds,
            "stale_ttl": settings.names_stale_ttl_seconds,
        },
        DataCategory.RWIS_MANIFEST: {
            "fresh_ttl": settings.rwis_fresh_ttl_seconds,
            "stale_ttl": settings.rwis_stale_ttl_seconds,
        },
        DataCategory.SNAPSHOT: {
            # Stale snapshots fall back to last-known-good instead
            "fresh_ttl": settings.image_fresh_ttl_seconds,
            "stale_ttl": 0,
        },
        DataCategory.MEDIA_URL: {
            # A stale rotated URL 404s upstream, so there is no stale tier
            "fresh_ttl": settings.media_url_ttl_seconds,
            "stale_ttl": 0,
        },
    }


def get_ttl_for_category(
    category: DataCategory,
    settings: Optional[Settings] = None,
) -> Tuple[int, int]:
    """
    Get TTL configuration for a data category.

    Args:
        category: The data category
        settings: Settings to read from (defaults to the process settings)

    Returns:
        (fresh_ttl, stale_ttl)
    """
    config = build_ttl_config(settings or default_settings)[category]
    return config["fresh_ttl"], config["stale_ttl"]
