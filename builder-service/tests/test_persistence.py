import pytest

from shopbuilder.core.errors import PageNotFound, PersistenceFailure, UnknownKind
from shopbuilder.services.persistence import (
    FileSystemPageStore,
    MemoryPageStore,
    PersistenceGateway,
    build_page_store,
)
from shopbuilder.config import Settings

from tests.factories import APP_KEY, make_instance


@pytest.fixture(params=["memory", "filesystem"])
def any_gateway(request, tmp_path):
    if request.param == "memory":
        return PersistenceGateway(MemoryPageStore())
    return PersistenceGateway(FileSystemPageStore(str(tmp_path / "store")))


def home_instances():
    return [
        make_instance("mobile-header", {"logoText": "Demo"}, position=0),
        make_instance("banner", {"title": "Sale"}, position=1),
        make_instance("product-grid", {"columns": 3}, position=2),
    ]


class TestPersistenceGateway:
    @pytest.mark.asyncio
    async def test_save_creates_app_on_first_save(self, any_gateway):
        await any_gateway.save_page(APP_KEY, "Home", home_instances())

        app = await any_gateway.get_app(APP_KEY)
        assert app.name == "demo.myshopify.com Mobile App"
        assert app.bundle_id == "com.demomyshopify.com.app"
        assert (await any_gateway.get_app(app.id)).app_key == APP_KEY

    @pytest.mark.asyncio
    async def test_save_and_load_round_trip(self, any_gateway):
        page_id = await any_gateway.save_page(APP_KEY, "Summer Sale", home_instances())

        page = await any_gateway.load_page(page_id)
        assert page.name == "Summer Sale"
        assert page.slug == "summer-sale"
        assert page.app_key == APP_KEY
        assert [inst.kind_id for inst in page.ordered_instances()] == ["mobile-header", "banner", "product-grid"]
        assert [inst.position for inst in page.ordered_instances()] == [0, 1, 2]
        assert page.instances[0].kind_type == "MOBILE_HEADER"
        assert page.find_instance(page.instances[2].instance_id).params == {"columns": 3}

    @pytest.mark.asyncio
    async def test_positions_renumbered_from_zero(self, any_gateway):
        instances = [make_instance("spacer", position=4), make_instance("button", position=9)]
        page_id = await any_gateway.save_page(APP_KEY, "Gaps", instances)

        page = await any_gateway.load_page(page_id)
        assert [inst.position for inst in page.ordered_instances()] == [0, 1]

    @pytest.mark.asyncio
    async def test_duplicate_slug_fails(self, any_gateway):
        await any_gateway.save_page(APP_KEY, "Home", [])
        with pytest.raises(PersistenceFailure):
            await any_gateway.save_page(APP_KEY, "home", [])

    @pytest.mark.asyncio
    async def test_same_slug_in_other_app(self, any_gateway):
        await any_gateway.save_page(APP_KEY, "Home", [])
        await any_gateway.save_page("other.myshopify.com", "Home", [])

        assert len(await any_gateway.list_pages("other.myshopify.com")) == 1

    @pytest.mark.asyncio
    async def test_unknown_kind_saves_nothing(self, any_gateway):
        with pytest.raises(UnknownKind):
            await any_gateway.save_page(APP_KEY, "Home", [make_instance("video")])

        assert await any_gateway.get_app(APP_KEY) is None

    @pytest.mark.asyncio
    async def test_load_by_slug(self, any_gateway):
        await any_gateway.save_page(APP_KEY, "Home", [])
        await any_gateway.save_page(APP_KEY, "Live Preview", [make_instance("banner")])

        page = await any_gateway.load_page_by_slug(APP_KEY, "live-preview")
        assert page.name == "Live Preview"

        with pytest.raises(PageNotFound):
            await any_gateway.load_page_by_slug(APP_KEY, "missing")

    @pytest.mark.asyncio
    async def test_current_page_prefers_preview_slug(self, any_gateway):
        await any_gateway.save_page(APP_KEY, "Live Preview", [make_instance("banner")])
        await any_gateway.save_page(APP_KEY, "Newer", [make_instance("spacer")])

        page = await any_gateway.load_current_page(APP_KEY, "live-preview")
        assert page.slug == "live-preview"

    @pytest.mark.asyncio
    async def test_missing_pages(self, any_gateway):
        assert await any_gateway.list_pages(APP_KEY) == []
        with pytest.raises(PageNotFound):
            await any_gateway.load_latest_page(APP_KEY)
        with pytest.raises(PageNotFound):
            await any_gateway.load_current_page(APP_KEY, "live-preview")
        with pytest.raises(PageNotFound):
            await any_gateway.load_page("missing")


@pytest.mark.asyncio
async def test_latest_page_is_most_recent(gateway):
    await gateway.save_page(APP_KEY, "First", [])
    second_id = await gateway.save_page(APP_KEY, "Second", [])

    latest = await gateway.load_latest_page(APP_KEY)
    assert latest.id == second_id
    assert (await gateway.load_current_page(APP_KEY, "live-preview")).id == second_id


@pytest.mark.asyncio
async def test_store_errors_become_persistence_failures(gateway, store):
    async def broken(*args, **kwargs):
        raise OSError("disk full")

    store.create_page = broken

    with pytest.raises(PersistenceFailure) as exc:
        await gateway.save_page(APP_KEY, "Home", [])
    assert isinstance(exc.value.cause, OSError)


class TestFileSystemPageStore:
    @pytest.mark.asyncio
    async def test_pages_survive_a_new_store(self, tmp_path):
        path = str(tmp_path / "store")
        page_id = await PersistenceGateway(FileSystemPageStore(path)).save_page(
            APP_KEY, "Home", [make_instance("banner", {"title": "Persisted"})]
        )

        page = await PersistenceGateway(FileSystemPageStore(path)).load_page(page_id)
        assert page.instances[0].params["title"] == "Persisted"

    @pytest.mark.asyncio
    async def test_recovers_from_backup(self, tmp_path):
        store = FileSystemPageStore(str(tmp_path / "store"))
        gateway = PersistenceGateway(store)
        page_id = await gateway.save_page(APP_KEY, "Home", [make_instance("banner")])

        # attach_instances rewrote the page file, so a backup of the first write exists
        store._page_file(page_id).write_text("{broken", encoding="utf-8")

        page = await gateway.load_page(page_id)
        assert page.name == "Home"


def test_build_page_store(tmp_path):
    assert isinstance(build_page_store(Settings(storage_backend="memory")), MemoryPageStore)
    store = build_page_store(Settings(storage_backend="filesystem", storage_path=str(tmp_path)))
    assert isinstance(store, FileSystemPageStore)
    with pytest.raises(ValueError):
        build_page_store(Settings(storage_backend="postgres"))
