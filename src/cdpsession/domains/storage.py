"""typed bindings for the devtools `Storage` domain.

commands are async methods on `StorageApi`; events are live `Subscription`s
that yield typed values. cookie structures reuse nodriver's generated
`cdp.network` types.

optional parameters left as `None` are omitted from the request entirely.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from nodriver import cdp

from ..core.broadcast import Subscription
from ..core.errors import DecodeError, MalformedResponse
from ..core.session import Session
from .util import NUMBER, ProtocolEnum, omit_none, require, require_list

logger = logging.getLogger("cdpsession.storage")

T = TypeVar("T")


class StorageType(ProtocolEnum):
    """enum of possible storage types."""
    APPCACHE = "appcache"
    COOKIES = "cookies"
    FILE_SYSTEMS = "file_systems"
    INDEXEDDB = "indexeddb"
    LOCAL_STORAGE = "local_storage"
    SHADER_CACHE = "shader_cache"
    WEBSQL = "websql"
    SERVICE_WORKERS = "service_workers"
    CACHE_STORAGE = "cache_storage"
    ALL = "all"
    OTHER = "other"


@dataclass
class UsageForType:
    """usage for a storage type."""
    #: name of storage type.
    storage_type: StorageType
    #: storage usage (bytes).
    usage: float

    def to_json(self) -> dict[str, Any]:
        return {
            "storageType": self.storage_type.to_json(),
            "usage": self.usage,
        }

    @classmethod
    def from_json(cls, json: dict[str, Any]) -> "UsageForType":
        return cls(
            storage_type=StorageType.from_json(require(json, "storageType", str, cls.__name__)),
            usage=require(json, "usage", NUMBER, cls.__name__),
        )


@dataclass
class TrustTokens:
    """pair of issuer origin and number of available (signed, but not used)
    trust tokens from that issuer."""
    issuer_origin: str
    count: float

    def to_json(self) -> dict[str, Any]:
        return {
            "issuerOrigin": self.issuer_origin,
            "count": self.count,
        }

    @classmethod
    def from_json(cls, json: dict[str, Any]) -> "TrustTokens":
        return cls(
            issuer_origin=require(json, "issuerOrigin", str, cls.__name__),
            count=require(json, "count", NUMBER, cls.__name__),
        )


@dataclass
class GetUsageAndQuotaResult:
    #: storage usage (bytes).
    usage: float
    #: storage quota (bytes).
    quota: float
    #: whether or not the origin has an active storage quota override.
    override_active: bool
    #: storage usage per type (bytes).
    usage_breakdown: list[UsageForType]

    @classmethod
    def from_json(cls, json: dict[str, Any]) -> "GetUsageAndQuotaResult":
        name = cls.__name__
        return cls(
            usage=require(json, "usage", NUMBER, name),
            quota=require(json, "quota", NUMBER, name),
            override_active=require(json, "overrideActive", bool, name),
            usage_breakdown=require_list(json, "usageBreakdown", UsageForType.from_json, name),
        )


@dataclass
class CacheStorageContentUpdated:
    """a cache's contents have been modified."""
    origin: str
    cache_name: str

    @classmethod
    def from_json(cls, json: dict[str, Any]) -> "CacheStorageContentUpdated":
        return cls(
            origin=require(json, "origin", str, cls.__name__),
            cache_name=require(json, "cacheName", str, cls.__name__),
        )


@dataclass
class IndexedDBContentUpdated:
    """the origin's indexeddb object store has been modified."""
    origin: str
    database_name: str
    object_store_name: str

    @classmethod
    def from_json(cls, json: dict[str, Any]) -> "IndexedDBContentUpdated":
        return cls(
            origin=require(json, "origin", str, cls.__name__),
            database_name=require(json, "databaseName", str, cls.__name__),
            object_store_name=require(json, "objectStoreName", str, cls.__name__),
        )


def _origin(json: dict[str, Any]) -> str:
    return require(json, "origin", str, "origin event")


# nodriver's Cookie.from_json coerces with str()/int()/bool(), so check the shape first
_COOKIE_FIELDS = (
    ("name", str),
    ("value", str),
    ("domain", str),
    ("path", str),
    ("size", int),
    ("httpOnly", bool),
    ("secure", bool),
    ("session", bool),
    ("sourcePort", int),
)


def _cookie(json: Any) -> cdp.network.Cookie:
    for key, expected in _COOKIE_FIELDS:
        require(json, key, expected, "Cookie")
    if json.get("expires") is not None:
        require(json, "expires", NUMBER, "Cookie")
    try:
        return cdp.network.Cookie.from_json(json)
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Cookie: {e!r}") from None


class StorageApi:
    """commands + events of the `Storage` domain over a `Session`.

    events:
    - `cache_storage_content_updated()`
    - `cache_storage_list_updated()`
    - `indexed_db_content_updated()`
    - `indexed_db_list_updated()`
    """

    def __init__(self, session: Session):
        self._session = session

    async def _call(
        self,
        method: str,
        params: dict[str, Any],
        decode: Callable[[dict[str, Any]], T] | None = None,
    ) -> T | None:
        result = await self._session.send(method, params)
        if decode is None:
            return None
        try:
            return decode(result)
        except DecodeError as e:
            logger.warning("undecodable %s result: %s", method, e)
            raise MalformedResponse(f"{method}: {e}") from e

    # events

    def cache_storage_content_updated(self) -> Subscription:
        """a cache's contents have been modified."""
        return self._session.subscribe(
            "Storage.cacheStorageContentUpdated",
            decode=CacheStorageContentUpdated.from_json,
        )

    def cache_storage_list_updated(self) -> Subscription:
        """a cache has been added/deleted. yields the origin."""
        return self._session.subscribe("Storage.cacheStorageListUpdated", decode=_origin)

    def indexed_db_content_updated(self) -> Subscription:
        """the origin's indexeddb object store has been modified."""
        return self._session.subscribe(
            "Storage.indexedDBContentUpdated",
            decode=IndexedDBContentUpdated.from_json,
        )

    def indexed_db_list_updated(self) -> Subscription:
        """the origin's indexeddb database list has been modified. yields the origin."""
        return self._session.subscribe("Storage.indexedDBListUpdated", decode=_origin)

    # commands

    async def clear_data_for_origin(self, origin: str, storage_types: str | Iterable[StorageType]):
        """clears storage for origin.

        :param origin: security origin.
        :param storage_types: comma separated list of storage types to clear,
        or an iterable of `StorageType`.
        """
        if not isinstance(storage_types, str):
            storage_types = ",".join(
                (t if isinstance(t, StorageType) else StorageType.from_json(t)).to_json()
                for t in storage_types
            )
        await self._call("Storage.clearDataForOrigin", {
            "origin": origin,
            "storageTypes": storage_types,
        })

    async def get_cookies(
        self,
        browser_context_id: cdp.browser.BrowserContextID | str | None = None,
    ) -> list[cdp.network.Cookie]:
        """returns all browser cookies.

        :param browser_context_id: browser context to use when called on the browser endpoint.
        :return: array of cookie objects.
        """
        return await self._call(
            "Storage.getCookies",
            omit_none(browserContextId=browser_context_id),
            lambda r: require_list(r, "cookies", _cookie, "getCookies"),
        )

    async def set_cookies(
        self,
        cookies: list[cdp.network.CookieParam],
        browser_context_id: cdp.browser.BrowserContextID | str | None = None,
    ):
        """sets given cookies.

        :param cookies: cookies to be set.
        :param browser_context_id: browser context to use when called on the browser endpoint.
        """
        await self._call("Storage.setCookies", omit_none(
            cookies=[c.to_json() for c in cookies],
            browserContextId=browser_context_id,
        ))

    async def clear_cookies(
        self,
        browser_context_id: cdp.browser.BrowserContextID | str | None = None,
    ):
        """clears cookies.

        :param browser_context_id: browser context to use when called on the browser endpoint.
        """
        await self._call("Storage.clearCookies", omit_none(browserContextId=browser_context_id))

    async def get_usage_and_quota(self, origin: str) -> GetUsageAndQuotaResult:
        """returns usage and quota in bytes.

        :param origin: security origin.
        """
        return await self._call(
            "Storage.getUsageAndQuota",
            {"origin": origin},
            GetUsageAndQuotaResult.from_json,
        )

    async def override_quota_for_origin(self, origin: str, quota_size: float | None = None):
        """override quota for the specified origin.

        calling it again replaces the override; calling it without `quota_size`
        resets the origin to its default quota. overrides are kept per origin
        until disabled.

        :param origin: security origin.
        :param quota_size: the quota size (in bytes) to override the original quota with.
        """
        await self._call("Storage.overrideQuotaForOrigin", omit_none(
            origin=origin,
            quotaSize=quota_size,
        ))

    async def track_cache_storage_for_origin(self, origin: str):
        """registers origin to be notified when an update occurs to its cache storage list."""
        await self._call("Storage.trackCacheStorageForOrigin", {"origin": origin})

    async def track_indexed_db_for_origin(self, origin: str):
        """registers origin to be notified when an update occurs to its indexeddb."""
        await self._call("Storage.trackIndexedDBForOrigin", {"origin": origin})

    async def untrack_cache_storage_for_origin(self, origin: str):
        """unregisters origin from receiving notifications for cache storage."""
        await self._call("Storage.untrackCacheStorageForOrigin", {"origin": origin})

    async def untrack_indexed_db_for_origin(self, origin: str):
        """unregisters origin from receiving notifications for indexeddb."""
        await self._call("Storage.untrackIndexedDBForOrigin", {"origin": origin})

    async def get_trust_tokens(self) -> list[TrustTokens]:
        """returns the number of stored trust tokens per issuer for the
        current browsing context."""
        return await self._call(
            "Storage.getTrustTokens",
            {},
            lambda r: require_list(r, "tokens", TrustTokens.from_json, "getTrustTokens"),
        )


__all__ = [
    "StorageType",
    "UsageForType",
    "TrustTokens",
    "GetUsageAndQuotaResult",
    "CacheStorageContentUpdated",
    "IndexedDBContentUpdated",
    "StorageApi",
]
