"""
Page Persistence Layer
======================

Durable storage for apps, saved pages and the component kinds they reference.

Supports multiple backends:
- In-memory (tests, throwaway sessions)
- File system (JSON files)
- PostgreSQL database

Design Principles:
- Saving always creates a new page; pages are never updated in place
- Every referenced kind gets a durable record (upsert by kind id)
- Store errors surface as PersistenceFailure; nothing is retried
"""

import json
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

import asyncpg
from loguru import logger

from shopbuilder.config import Settings
from shopbuilder.core.database import DatabaseManager
from shopbuilder.core.errors import PageNotFound, PersistenceFailure
from shopbuilder.models.schemas.component_catalog import (
    ComponentKind,
    ComponentRegistry,
    component_registry,
    slugify_name,
)
from shopbuilder.models.schemas.page import AppRecord, ComponentInstance, Page, ThemePreset
from shopbuilder.utils.datetime_utils import from_iso_string, utc_now
from shopbuilder.utils.logging import get_logger, trace_async

event_logger = get_logger(__name__)


# ============================================================================
# STORE ERRORS
# ============================================================================

class StoreError(Exception):
    """Raised by stores; the gateway converts it to PersistenceFailure"""
    pass


class DuplicateSlugError(StoreError):
    """Another page of the same app already uses the slug"""

    def __init__(self, app_id: str, slug: str):
        self.app_id = app_id
        self.slug = slug
        super().__init__(f"Slug {slug!r} already exists for app {app_id}")


# ============================================================================
# STORE INTERFACE
# ============================================================================

class PageStore(Protocol):
    """Interface that all page stores must implement. Each call is atomic on its own."""

    async def find_app(self, app_key_or_id: str) -> Optional[AppRecord]:
        ...

    async def create_app(self, app: AppRecord) -> AppRecord:
        ...

    async def upsert_component_kind(self, kind: ComponentKind) -> None:
        """Create the kind record if missing; existing records are left as they are"""
        ...

    async def create_page(self, app_id: str, name: str, slug: str) -> Page:
        ...

    async def attach_instances(self, page_id: str, instances: Sequence[ComponentInstance]) -> None:
        ...

    async def find_pages_by_app(self, app_id: str) -> List[Page]:
        """Pages of an app, most recently updated first, instances in position order"""
        ...

    async def find_page(self, page_id: str) -> Optional[Page]:
        ...


def _new_id() -> str:
    return uuid.uuid4().hex


def _kind_metadata(kind: ComponentKind) -> Dict[str, Any]:
    return {
        "id": kind.id,
        "name": kind.name,
        "type": kind.type,
        "category": kind.category,
        "description": kind.description,
        "icon": kind.icon,
    }


def _sort_latest_first(pages: List[Page]) -> List[Page]:
    return sorted(pages, key=lambda page: page.updated_at, reverse=True)


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class MemoryPageStore:
    """Process-local store backed by dictionaries"""

    def __init__(self):
        self.apps: Dict[str, AppRecord] = {}
        self.kinds: Dict[str, Dict[str, Any]] = {}
        self.pages: Dict[str, Dict[str, Any]] = {}
        self.instances: Dict[str, List[Dict[str, Any]]] = {}

    async def find_app(self, app_key_or_id: str) -> Optional[AppRecord]:
        for app in self.apps.values():
            if app.id == app_key_or_id or app.app_key == app_key_or_id:
                return app
        return None

    async def create_app(self, app: AppRecord) -> AppRecord:
        if await self.find_app(app.app_key) is not None:
            raise StoreError(f"App already exists: {app.app_key}")
        self.apps[app.id] = app
        return app

    async def upsert_component_kind(self, kind: ComponentKind) -> None:
        self.kinds.setdefault(kind.id, _kind_metadata(kind))

    async def create_page(self, app_id: str, name: str, slug: str) -> Page:
        if app_id not in self.apps:
            raise StoreError(f"Unknown app id: {app_id}")
        for record in self.pages.values():
            if record["app_id"] == app_id and record["slug"] == slug:
                raise DuplicateSlugError(app_id, slug)

        now = utc_now()
        page_id = _new_id()
        self.pages[page_id] = {
            "id": page_id,
            "app_id": app_id,
            "name": name,
            "slug": slug,
            "created_at": now,
            "updated_at": now,
        }
        self.instances[page_id] = []
        return self._to_page(self.pages[page_id])

    async def attach_instances(self, page_id: str, instances: Sequence[ComponentInstance]) -> None:
        if page_id not in self.pages:
            raise StoreError(f"Unknown page id: {page_id}")
        rows = []
        for inst in instances:
            if inst.kind_id not in self.kinds:
                raise StoreError(f"Component kind has no record: {inst.kind_id}")
            rows.append({
                "id": _new_id(),
                "kind_id": inst.kind_id,
                "position": inst.position,
                "params": json.loads(json.dumps(inst.params)),
            })
        self.instances[page_id].extend(rows)
        self.pages[page_id]["updated_at"] = utc_now()

    async def find_pages_by_app(self, app_id: str) -> List[Page]:
        pages = [
            self._to_page(record)
            for record in reversed(list(self.pages.values()))
            if record["app_id"] == app_id
        ]
        return _sort_latest_first(pages)

    async def find_page(self, page_id: str) -> Optional[Page]:
        record = self.pages.get(page_id)
        return self._to_page(record) if record else None

    def _to_page(self, record: Dict[str, Any]) -> Page:
        app = self.apps[record["app_id"]]
        rows = sorted(self.instances.get(record["id"], []), key=lambda row: row["position"])
        return Page(
            id=record["id"],
            app_key=app.app_key,
            name=record["name"],
            slug=record["slug"],
            created_at=record["created_at"],
            updated_at=record["updated_at"],
            instances=[self._to_instance(row) for row in rows],
        )

    def _to_instance(self, row: Dict[str, Any]) -> ComponentInstance:
        kind = self.kinds.get(row["kind_id"], {})
        return ComponentInstance(
            instance_id=row["id"],
            kind_id=row["kind_id"],
            params=json.loads(json.dumps(row["params"])),
            position=row["position"],
            kind_type=kind.get("type"),
            kind_name=kind.get("name"),
        )


# ============================================================================
# FILE SYSTEM STORE
# ============================================================================

class FileSystemPageStore:
    """
    File-based store using JSON files.

    Structure:
        storage_path/
            apps.json
            component_kinds.json
            pages/
                {page_id}.json
                {page_id}.json.backup
    """

    def __init__(self, storage_path: str = "./builder_data"):
        self.storage_path = Path(storage_path)
        self.pages_path = self.storage_path / "pages"
        self.pages_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"FileSystemPageStore initialized: {self.storage_path}")

    # ------------------------------------------------------------------
    # raw file helpers
    # ------------------------------------------------------------------

    def _read_json(self, file_path: Path, default: Any) -> Any:
        if not file_path.exists():
            return default

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError:
            logger.error(f"Store file corrupted: {file_path}, attempting backup recovery")
            return self._read_backup(file_path)

    def _read_backup(self, file_path: Path) -> Any:
        backup_path = file_path.with_name(file_path.name + ".backup")

        if not backup_path.exists():
            raise StoreError(f"Store file corrupted and no backup available: {file_path.name}")

        try:
            with open(backup_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(f"Both store file and backup are corrupted: {file_path.name}") from e

        logger.warning(f"Recovered store file from backup: {file_path.name}")
        return data

    def _write_json(self, file_path: Path, data: Any) -> None:
        """Write a file atomically, keeping the previous version as a backup"""
        backup_path = file_path.with_name(file_path.name + ".backup")
        temp_path = file_path.with_name(file_path.name + ".tmp")

        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, default=str)

            if file_path.exists():
                file_path.replace(backup_path)

            temp_path.replace(file_path)

        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise StoreError(f"Failed to write {file_path.name}: {e}") from e

    def _page_file(self, page_id: str) -> Path:
        return self.pages_path / f"{page_id}.json"

    def _load_apps(self) -> Dict[str, Dict[str, Any]]:
        return self._read_json(self.storage_path / "apps.json", {})

    def _load_kinds(self) -> Dict[str, Dict[str, Any]]:
        return self._read_json(self.storage_path / "component_kinds.json", {})

    def _iter_page_records(self) -> List[Dict[str, Any]]:
        records = []
        for file_path in sorted(self.pages_path.glob("*.json")):
            records.append(self._read_json(file_path, None))
        return [record for record in records if record]

    # ------------------------------------------------------------------
    # PageStore
    # ------------------------------------------------------------------

    async def find_app(self, app_key_or_id: str) -> Optional[AppRecord]:
        for data in self._load_apps().values():
            if data["id"] == app_key_or_id or data["app_key"] == app_key_or_id:
                return AppRecord.model_validate(data)
        return None

    async def create_app(self, app: AppRecord) -> AppRecord:
        apps = self._load_apps()
        if any(data["app_key"] == app.app_key for data in apps.values()):
            raise StoreError(f"App already exists: {app.app_key}")
        apps[app.id] = app.model_dump(mode="json")
        self._write_json(self.storage_path / "apps.json", apps)
        logger.debug(f"Created app record: {app.app_key}")
        return app

    async def upsert_component_kind(self, kind: ComponentKind) -> None:
        kinds = self._load_kinds()
        if kind.id in kinds:
            return
        kinds[kind.id] = _kind_metadata(kind)
        self._write_json(self.storage_path / "component_kinds.json", kinds)

    async def create_page(self, app_id: str, name: str, slug: str) -> Page:
        apps = self._load_apps()
        if app_id not in apps:
            raise StoreError(f"Unknown app id: {app_id}")
        for record in self._iter_page_records():
            if record["app_id"] == app_id and record["slug"] == slug:
                raise DuplicateSlugError(app_id, slug)

        now = utc_now().isoformat()
        record = {
            "id": _new_id(),
            "app_id": app_id,
            "name": name,
            "slug": slug,
            "created_at": now,
            "updated_at": now,
            "instances": [],
        }
        self._write_json(self._page_file(record["id"]), record)
        logger.debug(f"Saved page to file: {record['id']}")
        return self._to_page(record, apps, self._load_kinds())

    async def attach_instances(self, page_id: str, instances: Sequence[ComponentInstance]) -> None:
        record = self._read_json(self._page_file(page_id), None)
        if record is None:
            raise StoreError(f"Unknown page id: {page_id}")

        kinds = self._load_kinds()
        for inst in instances:
            if inst.kind_id not in kinds:
                raise StoreError(f"Component kind has no record: {inst.kind_id}")
            record["instances"].append({
                "id": _new_id(),
                "kind_id": inst.kind_id,
                "position": inst.position,
                "params": inst.params,
            })
        record["updated_at"] = utc_now().isoformat()
        self._write_json(self._page_file(page_id), record)

    async def find_pages_by_app(self, app_id: str) -> List[Page]:
        apps = self._load_apps()
        kinds = self._load_kinds()
        pages = [
            self._to_page(record, apps, kinds)
            for record in self._iter_page_records()
            if record["app_id"] == app_id
        ]
        return _sort_latest_first(pages)

    async def find_page(self, page_id: str) -> Optional[Page]:
        record = self._read_json(self._page_file(page_id), None)
        if record is None:
            return None
        return self._to_page(record, self._load_apps(), self._load_kinds())

    def _to_page(
        self,
        record: Dict[str, Any],
        apps: Dict[str, Dict[str, Any]],
        kinds: Dict[str, Dict[str, Any]]
    ) -> Page:
        app = apps.get(record["app_id"], {})
        rows = sorted(record.get("instances", []), key=lambda row: row["position"])
        return Page(
            id=record["id"],
            app_key=app.get("app_key"),
            name=record["name"],
            slug=record["slug"],
            created_at=from_iso_string(record["created_at"]),
            updated_at=from_iso_string(record["updated_at"]),
            instances=[
                ComponentInstance(
                    instance_id=row["id"],
                    kind_id=row["kind_id"],
                    params=row["params"],
                    position=row["position"],
                    kind_type=kinds.get(row["kind_id"], {}).get("type"),
                    kind_name=kinds.get(row["kind_id"], {}).get("name"),
                )
                for row in rows
            ],
        )


# ============================================================================
# POSTGRESQL STORE
# ============================================================================

class PostgresPageStore:
    """Store backed by PostgreSQL through the pooled DatabaseManager"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def find_app(self, app_key_or_id: str) -> Optional[AppRecord]:
        row = await self.db.fetch_one(
            """
            SELECT id, app_key, name, bundle_id, package_name, theme, created_at
            FROM mobile_apps
            WHERE id = $1 OR app_key = $1
            LIMIT 1
            """,
            app_key_or_id
        )
        if row is None:
            return None
        theme = json.loads(row.pop("theme")) if row.get("theme") else None
        if theme:
            row["theme"] = ThemePreset.model_validate(theme)
        return AppRecord.model_validate(row)

    async def create_app(self, app: AppRecord) -> AppRecord:
        await self.db.execute(
            """
            INSERT INTO mobile_apps (id, app_key, name, bundle_id, package_name, theme, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            """,
            app.id,
            app.app_key,
            app.name,
            app.bundle_id,
            app.package_name,
            json.dumps(app.theme.model_dump(mode="json")),
            app.created_at
        )
        return app

    async def upsert_component_kind(self, kind: ComponentKind) -> None:
        meta = _kind_metadata(kind)
        await self.db.execute(
            """
            INSERT INTO component_kinds (id, name, type, category, description, icon)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (id) DO NOTHING
            """,
            meta["id"], meta["name"], meta["type"], meta["category"], meta["description"], meta["icon"]
        )

    async def create_page(self, app_id: str, name: str, slug: str) -> Page:
        try:
            row = await self.db.fetch_one(
                """
                INSERT INTO app_pages (id, app_id, name, slug)
                VALUES ($1, $2, $3, $4)
                RETURNING id, name, slug, created_at, updated_at
                """,
                _new_id(), app_id, name, slug
            )
        except asyncpg.exceptions.UniqueViolationError as e:
            raise DuplicateSlugError(app_id, slug) from e

        app_key = await self.db.fetch_val("SELECT app_key FROM mobile_apps WHERE id = $1", app_id)
        return Page(app_key=app_key, **row)

    async def attach_instances(self, page_id: str, instances: Sequence[ComponentInstance]) -> None:
        async with self.db.transaction() as conn:
            for inst in instances:
                await conn.execute(
                    """
                    INSERT INTO page_components (id, page_id, kind_id, position, params)
                    VALUES ($1, $2, $3, $4, $5)
                    """,
                    _new_id(), page_id, inst.kind_id, inst.position, json.dumps(inst.params)
                )
            await conn.execute("UPDATE app_pages SET updated_at = NOW() WHERE id = $1", page_id)

    async def find_pages_by_app(self, app_id: str) -> List[Page]:
        rows = await self.db.fetch_all(
            """
            SELECT p.id, p.name, p.slug, p.created_at, p.updated_at, a.app_key
            FROM app_pages p
            JOIN mobile_apps a ON a.id = p.app_id
            WHERE p.app_id = $1
            ORDER BY p.updated_at DESC
            """,
            app_id
        )
        return [await self._with_instances(row) for row in rows]

    async def find_page(self, page_id: str) -> Optional[Page]:
        row = await self.db.fetch_one(
            """
            SELECT p.id, p.name, p.slug, p.created_at, p.updated_at, a.app_key
            FROM app_pages p
            JOIN mobile_apps a ON a.id = p.app_id
            WHERE p.id = $1
            """,
            page_id
        )
        return await self._with_instances(row) if row else None

    async def _with_instances(self, row: Dict[str, Any]) -> Page:
        instance_rows = await self.db.fetch_all(
            """
            SELECT c.id, c.kind_id, c.position, c.params, k.type AS kind_type, k.name AS kind_name
            FROM page_components c
            JOIN component_kinds k ON k.id = c.kind_id
            WHERE c.page_id = $1
            ORDER BY c.position ASC
            """,
            row["id"]
        )
        return Page(
            instances=[
                ComponentInstance(
                    instance_id=inst["id"],
                    kind_id=inst["kind_id"],
                    params=json.loads(inst["params"]),
                    position=inst["position"],
                    kind_type=inst["kind_type"],
                    kind_name=inst["kind_name"],
                )
                for inst in instance_rows
            ],
            **row
        )


# ============================================================================
# GATEWAY
# ============================================================================

class PersistenceGateway:
    """
    Save and load pages for an app through a PageStore.

    Usage:
        gateway = PersistenceGateway(MemoryPageStore())
        page_id = await gateway.save_page("demo.myshopify.com", "Home", instances)
        page = await gateway.load_latest_page("demo.myshopify.com")
    """

    def __init__(self, store: PageStore, registry: Optional[ComponentRegistry] = None):
        self.store = store
        self.registry = registry or component_registry

    async def _call(self, operation: str, coro):
        try:
            return await coro
        except PersistenceFailure:
            raise
        except Exception as e:
            event_logger.error(
                "persistence.store.failed",
                extra={"operation": operation, "error_type": type(e).__name__},
                exc_info=e
            )
            raise PersistenceFailure(f"{operation} failed: {e}", cause=e) from e

    async def _get_or_create_app(self, app_key: str) -> AppRecord:
        app = await self._call("find_app", self.store.find_app(app_key))
        if app is not None:
            return app

        app = AppRecord.for_app_key(_new_id(), app_key)
        await self._call("create_app", self.store.create_app(app))
        event_logger.info("persistence.app.created", extra={"app_key": app_key, "app_id": app.id})
        return app

    @trace_async("persistence.save_page")
    async def save_page(
        self,
        app_key: str,
        name: str,
        instances: Sequence[ComponentInstance]
    ) -> str:
        """
        Save a new page for the app, creating the app record on first save.

        Instances are stored in the order given; positions are renumbered
        from zero.

        Raises:
            UnknownKind: an instance references a kind missing from the registry
            PersistenceFailure: the store failed (duplicate slug included)
        """
        kinds: Dict[str, ComponentKind] = {}
        for inst in instances:
            if inst.kind_id not in kinds:
                kinds[inst.kind_id] = self.registry.get_kind(inst.kind_id)

        app = await self._get_or_create_app(app_key)

        for kind in kinds.values():
            await self._call("upsert_component_kind", self.store.upsert_component_kind(kind))

        slug = slugify_name(name)
        page = await self._call("create_page", self.store.create_page(app.id, name, slug))

        ordered = [
            inst.model_copy(update={"position": index})
            for index, inst in enumerate(instances)
        ]
        await self._call("attach_instances", self.store.attach_instances(page.id, ordered))

        event_logger.info(
            "persistence.page.saved",
            extra={"app_key": app_key, "page_id": page.id, "slug": slug, "instances": len(ordered)}
        )
        return page.id

    async def get_app(self, app_key_or_id: str) -> Optional[AppRecord]:
        return await self._call("find_app", self.store.find_app(app_key_or_id))

    async def list_pages(self, app_key: str) -> List[Page]:
        """All pages of the app, most recently updated first. Empty when the app is unknown."""
        app = await self.get_app(app_key)
        if app is None:
            return []
        return await self._call("find_pages_by_app", self.store.find_pages_by_app(app.id))

    async def load_latest_page(self, app_key: str) -> Page:
        pages = await self.list_pages(app_key)
        if not pages:
            raise PageNotFound(f"No pages saved for {app_key}")
        return pages[0]

    async def load_page_by_slug(self, app_key: str, slug: str) -> Page:
        for page in await self.list_pages(app_key):
            if page.slug == slug:
                return page
        raise PageNotFound(f"No page {slug!r} for {app_key}")

    async def load_page(self, page_id: str) -> Page:
        page = await self._call("find_page", self.store.find_page(page_id))
        if page is None:
            raise PageNotFound(f"Page not found: {page_id}")
        return page

    async def load_current_page(self, app_key: str, preview_slug: str) -> Page:
        """The page shown on devices: the reserved preview slug, else the latest page."""
        pages = await self.list_pages(app_key)
        if not pages:
            raise PageNotFound(f"No pages saved for {app_key}")
        for page in pages:
            if page.slug == preview_slug:
                return page
        return pages[0]


def build_page_store(config: Settings, db: Optional[DatabaseManager] = None) -> PageStore:
    """Create the page store selected by ``storage_backend``."""
    if config.storage_backend == "memory":
        return MemoryPageStore()
    if config.storage_backend == "postgres":
        if db is None:
            raise ValueError("postgres storage requires a DatabaseManager")
        return PostgresPageStore(db)
    return FileSystemPageStore(config.storage_path)
