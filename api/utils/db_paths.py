"""
Database path utilities for the bridge API services.
"""
from pathlib import Path

from config.settings import settings


def get_bridge_db_path() -> str:
    """
    Get the path to the bridge database.

    Creates the parent directory if it doesn't exist.

    Returns:
        Path to the SQLite file shared by the ledger, contacts and settings stores
    """
    db_path = Path(settings.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return str(db_path)
