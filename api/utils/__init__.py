# Bridge API Utilities
"""
Shared utility functions for the bridge API services.
"""

from api.utils.datetime_utils import make_aware, utc_now, format_offset_timestamp
from api.utils.db_paths import get_bridge_db_path

__all__ = ["make_aware", "utc_now", "format_offset_timestamp", "get_bridge_db_path"]
