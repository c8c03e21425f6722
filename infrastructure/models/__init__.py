"""Infrastructure models package exports."""
from .base import new_metadata, NAMING_CONVENTION
from .tables import OAuthTables

__all__ = [
    "new_metadata",
    "NAMING_CONVENTION",
    "OAuthTables",
]
