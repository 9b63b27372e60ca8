"""Services package - coercion and cache coordination."""

from atomic_tables.services import coercion
from atomic_tables.services.cache import CacheCoordinator, fingerprint, new_epoch

__all__ = [
    "coercion",
    "CacheCoordinator",
    "fingerprint",
    "new_epoch",
]
