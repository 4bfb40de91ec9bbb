from .util import ProtocolEnum
from .storage import (
    StorageApi,
    StorageType,
    UsageForType,
    TrustTokens,
    GetUsageAndQuotaResult,
    CacheStorageContentUpdated,
    IndexedDBContentUpdated,
)

__all__ = [
    "ProtocolEnum",
    "StorageApi",
    "StorageType",
    "UsageForType",
    "TrustTokens",
    "GetUsageAndQuotaResult",
    "CacheStorageContentUpdated",
    "IndexedDBContentUpdated",
]
