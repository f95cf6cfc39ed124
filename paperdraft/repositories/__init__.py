"""
Repository Layer Package.

Provides data-access abstractions over the Supabase table store.
All profile row access flows through repositories; services never
touch ``db.supabase.table(...)`` directly.

Usage:
    from paperdraft.repositories.profile_repository import ProfileRepository
"""

from paperdraft.repositories.base_repository import BaseRepository
from paperdraft.repositories.profile_repository import ProfileRepository

__all__ = [
    "BaseRepository",
    "ProfileRepository",
]
