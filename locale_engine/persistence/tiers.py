"""Storage tier implementations behind one probe/get/set/remove interface."""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from http.cookies import SimpleCookie
from typing import Dict, Optional
from urllib.parse import quote, unquote

from sqlalchemy import Engine, delete
from sqlalchemy.orm import sessionmaker

from locale_engine.persistence.sql import StoredValue, create_store_engine, session_scope
from locale_engine.utils.errors import StorageTierUnavailableError

logger = logging.getLogger(__name__)

PROBE_PREFIX = "__locale_engine_probe__"


class StorageTier(ABC):
    """One persistence backend in the preference-ordered tier list."""

    name: str = "tier"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        ...

    async def probe(self) -> bool:
        """Write, read back and delete a throwaway key."""
        key = f"{PROBE_PREFIX}{uuid.uuid4().hex}"
        try:
            await self.set(key, "1")
            ok = await self.get(key) == "1"
            await self.remove(key)
            if not ok:
                raise StorageTierUnavailableError(
                    f"Storage tier {self.name} did not return the probe value", {"tier": self.name}
                )
            return True
        except Exception as e:
            error = e if isinstance(e, StorageTierUnavailableError) else StorageTierUnavailableError(
                f"Storage tier {self.name} failed its probe: {e}", {"tier": self.name}
            )
            logger.warning(error.message, extra={"tier": self.name})
            return False


class InMemoryStorageTier(StorageTier):
    """Dictionary-backed tier; used as the session-scoped tier and in tests."""

    def __init__(self, name: str = "session"):
        self.name = name
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class SqlStorageTier(StorageTier):
    """Durable tier backed by a SQLAlchemy key/value table."""

    name = "durable"

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None):
        self.url = url
        self._engine = engine
        self._factory: Optional[sessionmaker] = None

    def _session_factory(self) -> sessionmaker:
        if self._factory is None:
            if self._engine is None:
                self._engine = create_store_engine(self.url or "sqlite://")
            self._factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        return self._factory

    def _get(self, key: str) -> Optional[str]:
        with session_scope(self._session_factory()) as db:
            row = db.get(StoredValue, key)
            return row.value if row is not None else None

    def _set(self, key: str, value: str) -> None:
        with session_scope(self._session_factory()) as db:
            row = db.get(StoredValue, key)
            if row is None:
                db.add(StoredValue(key=key, value=value))
            else:
                row.value = value

    def _remove(self, key: str) -> None:
        with session_scope(self._session_factory()) as db:
            db.execute(delete(StoredValue).where(StoredValue.key == key))

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()


class CookieStorageTier(StorageTier):
    """
    Legacy cookie tier.

    Values live in a SimpleCookie jar that the host layer turns into
    Set-Cookie headers (`headers()`) and refills from the request
    (`load(header)`).
    """

    name = "cookie"

    def __init__(self, max_age: int = 365 * 24 * 60 * 60, path: str = "/", same_site: str = "Lax"):
        self.max_age = max_age
        self.path = path
        self.same_site = same_site
        self.jar = SimpleCookie()

    def load(self, cookie_header: str) -> None:
        self.jar.load(cookie_header)

    async def get(self, key: str) -> Optional[str]:
        morsel = self.jar.get(key)
        if morsel is None or morsel["max-age"] == 0:
            return None
        return unquote(morsel.value)

    async def set(self, key: str, value: str) -> None:
        self.jar[key] = quote(value, safe="")
        morsel = self.jar[key]
        morsel["max-age"] = self.max_age
        morsel["path"] = self.path
        morsel["samesite"] = self.same_site

    async def remove(self, key: str) -> None:
        """Replace the cookie with an expired one so the browser drops it too."""
        if key.startswith(PROBE_PREFIX):
            # availability-check cookies never reach the browser
            self.jar.pop(key, None)
            return
        self.jar[key] = ""
        morsel = self.jar[key]
        morsel["max-age"] = 0
        morsel["path"] = self.path
        morsel["samesite"] = self.same_site

    def headers(self) -> Dict[str, str]:
        return {key: morsel.OutputString() for key, morsel in self.jar.items()}
