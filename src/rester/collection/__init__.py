"""
Rester Request Collection

Persisted request templates.
"""

from .store import DEFAULT_COLLECTION_FILE, RequestCollection

__all__ = ["RequestCollection", "DEFAULT_COLLECTION_FILE"]
