import json
import re
from datetime import datetime, timezone

import pytest

from shopbuilder.core.errors import GenerationAborted
from shopbuilder.models.schemas.live_config import CatalogItem
from shopbuilder.models.schemas.page import AppRecord, Page
from shopbuilder.services.catalog import CatalogResolver, InMemoryCatalogCache
from shopbuilder.services.generation import (
    NEUTRAL_FRAGMENT,
    CodeGenerator,
    generate_for_app,
    render_fragment,
    sanitize_app_key,
)
from shopbuilder.services.persistence import MemoryPageStore, PersistenceGateway

from tests.factories import APP_KEY, make_instance


def jsx_tags(source):
    return set(re.findall(r"<([A-Z]\w*)", source))


def imported_names(source):
    names = set()
    for default, braced in re.findall(r"^import (\w+)?(?:, )?(?:\{([^}]*)\})? from", source, re.MULTILINE):
        if default:
            names.add(default)
        names.update(name.strip() for name in braced.split(",") if name.strip())
    return names


class StaticStorefront:
    def __init__(self, items):
        self.items = items

    async def fetch_catalog_items(self, app_key):
        return self.items


def fixed_clock(hour):
    return lambda: datetime(2025, 6, 1, hour, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def app_record():
    return AppRecord.for_app_key("app-1", APP_KEY)


@pytest.fixture
def home_page():
    return Page(id="page-1", name="Home", instances=[
        make_instance("mobile-header", {"logoText": "Demo"}, position=0),
        make_instance("product-grid", {"title": "Picks", "columns": 2}, position=2),
        make_instance("banner", {"title": "Sale"}, position=1),
    ])


def read_tree(root):
    return {
        str(path.relative_to(root)): path.read_text(encoding="utf-8")
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


def without_timestamps(tree):
    tree = dict(tree)
    tree["App.js"] = "\n".join(tree["App.js"].splitlines()[1:])
    config = json.loads(tree["app-config.json"])
    config.pop("generatedAt")
    tree["app-config.json"] = config
    return tree


class TestRenderFragment:
    def test_props_are_json_literals(self):
        fragment = render_fragment("banner", {"title": "Sale", "height": "200px"})
        assert fragment == '<Banner props={{"height": "200px", "title": "Sale"}} />'

    def test_values_cannot_break_out(self):
        fragment = render_fragment("text-block", {"content": '"} /><Evil x={"'})
        assert fragment == '<TextBlock props={{"content": "\\"} /><Evil x={\\""}} />'

    def test_product_kinds_receive_products(self):
        assert "products={products}" in render_fragment("product-grid", {})
        assert "products={products}" in render_fragment("featured-collection", {})

    def test_unknown_kind_is_neutral(self):
        assert render_fragment("video", {"src": "x"}) == NEUTRAL_FRAGMENT == "<View />"


class TestCodeGenerator:
    def test_output_tree(self, tmp_path, home_page, app_record):
        out = CodeGenerator(clock=fixed_clock(12)).generate(home_page, app_record, tmp_path)

        assert out == tmp_path / "demo-myshopify-com"
        app_js = (out / "App.js").read_text(encoding="utf-8")
        assert app_js.startswith("// Generated by Shop App Builder at 2025-06-01T12:00:00.000Z")
        assert app_js.index("<MobileHeader") < app_js.index("<Banner") < app_js.index("<ProductGrid")
        assert "import Banner from './src/components/Banner';" in app_js
        assert "import Spacer" not in app_js
        assert 'screens={[{ name: "Home", component: HomeScreen }]}' in app_js

        assert (out / "src" / "components" / "Banner.js").exists()
        assert "'#007AFF'" not in (out / "src" / "theme" / "index.js").read_text(encoding="utf-8")
        assert '"#007AFF"' in (out / "src" / "theme" / "index.js").read_text(encoding="utf-8")

        package = json.loads((out / "package.json").read_text(encoding="utf-8"))
        assert package["name"] == "demo-myshopify-com-mobile-app"
        assert package["displayName"] == "demo.myshopify.com Mobile App"

        config = json.loads((out / "app-config.json").read_text(encoding="utf-8"))
        assert config["bundleId"] == "com.demomyshopify.com.app"
        assert [c["kindId"] for c in config["page"]["components"]] == ["mobile-header", "banner", "product-grid"]
        assert config["generatedAt"] == "2025-06-01T12:00:00.000Z"

    def test_regeneration_is_idempotent_apart_from_timestamp(self, tmp_path, home_page, app_record):
        first = read_tree(CodeGenerator(clock=fixed_clock(12)).generate(home_page, app_record, tmp_path))
        second = read_tree(CodeGenerator(clock=fixed_clock(18)).generate(home_page, app_record, tmp_path))

        assert first != second
        assert without_timestamps(first) == without_timestamps(second)
        assert not (tmp_path / "demo-myshopify-com.tmp").exists()

    def test_regeneration_replaces_old_files(self, tmp_path, home_page, app_record):
        out = CodeGenerator().generate(home_page, app_record, tmp_path)
        (out / "stale.js").write_text("old", encoding="utf-8")

        CodeGenerator().generate(home_page, app_record, tmp_path)
        assert not (out / "stale.js").exists()

    def test_empty_page_generates(self, tmp_path, app_record):
        out = CodeGenerator().generate(Page(name="Home"), app_record, tmp_path)

        app_js = (out / "App.js").read_text(encoding="utf-8")
        assert "const HomeScreen" in app_js
        assert "./src/components/" not in app_js

    def test_unknown_kind_degrades(self, tmp_path, app_record):
        page = Page(name="Home", instances=[make_instance("video"), make_instance("spacer", position=1)])
        out = CodeGenerator().generate(page, app_record, tmp_path)

        app_js = (out / "App.js").read_text(encoding="utf-8")
        assert "<View />" in app_js
        assert "<Spacer" in app_js
        assert jsx_tags(app_js) <= imported_names(app_js)

    def test_every_emitted_tag_is_imported(self, tmp_path, app_record):
        kinds = ["banner", "carousel", "countdown", "product-grid", "text-block", "image", "button", "spacer",
                 "mobile-header", "video"]
        page = Page(name="Home", instances=[make_instance(kind, position=i) for i, kind in enumerate(kinds)])
        app_js = (CodeGenerator().generate(page, app_record, tmp_path) / "App.js").read_text(encoding="utf-8")

        assert "View" in jsx_tags(app_js)
        assert jsx_tags(app_js) <= imported_names(app_js)

    def test_missing_skeleton_aborts(self, tmp_path, home_page, app_record):
        generator = CodeGenerator(skeleton_path=tmp_path / "missing")
        with pytest.raises(GenerationAborted):
            generator.generate(home_page, app_record, tmp_path / "out")

    def test_unwritable_output_aborts(self, tmp_path, home_page, app_record):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        with pytest.raises(GenerationAborted):
            CodeGenerator().generate(home_page, app_record, blocker)


def test_sanitize_app_key():
    assert sanitize_app_key("Demo.MyShopify.com") == "demo-myshopify-com"
    assert sanitize_app_key("...") == "app"


class TestGenerateForApp:
    @pytest.mark.asyncio
    async def test_generates_current_page(self, tmp_path, gateway):
        await gateway.save_page(APP_KEY, "Live Preview", [make_instance("banner", {"title": "Live"})])
        await gateway.save_page(APP_KEY, "Draft", [make_instance("spacer")])

        out = await generate_for_app(gateway, APP_KEY, tmp_path, preview_slug="live-preview")

        config = json.loads((out / "app-config.json").read_text(encoding="utf-8"))
        assert config["page"]["slug"] == "live-preview"

    @pytest.mark.asyncio
    async def test_accepts_app_id(self, tmp_path, gateway):
        await gateway.save_page(APP_KEY, "Home", [])
        app = await gateway.get_app(APP_KEY)

        out = await generate_for_app(gateway, app.id, tmp_path)
        assert out.name == "demo-myshopify-com"

    @pytest.mark.asyncio
    async def test_app_without_pages_gets_empty_home(self, tmp_path):
        store = MemoryPageStore()
        await store.create_app(AppRecord.for_app_key("app-1", APP_KEY))

        out = await generate_for_app(PersistenceGateway(store), APP_KEY, tmp_path)

        config = json.loads((out / "app-config.json").read_text(encoding="utf-8"))
        assert config["page"]["name"] == "Home"
        assert config["page"]["components"] == []

    @pytest.mark.asyncio
    async def test_unknown_app_aborts(self, tmp_path, gateway):
        with pytest.raises(GenerationAborted):
            await generate_for_app(gateway, "missing.myshopify.com", tmp_path)

    @pytest.mark.asyncio
    async def test_catalog_is_embedded(self, tmp_path, gateway, resolver):
        await gateway.save_page(APP_KEY, "Home", [make_instance("product-grid")])

        out = await generate_for_app(gateway, APP_KEY, tmp_path, resolver=resolver)

        config = json.loads((out / "app-config.json").read_text(encoding="utf-8"))
        assert len(config["catalogItems"]) == 4
        assert config["catalogItems"][0]["imageUrl"].startswith("https://")

    @pytest.mark.asyncio
    async def test_catalog_changes_only_touch_app_config(self, tmp_path, gateway):
        await gateway.save_page(APP_KEY, "Home", [make_instance("product-grid")])
        generator = CodeGenerator(clock=fixed_clock(9))

        trees = []
        for title in ["Tote", "Mug"]:
            storefront = StaticStorefront([CatalogItem(id=title, title=title, image_url="https://cdn.example/x.png",
                                                       price="10.00")])
            resolver = CatalogResolver(InMemoryCatalogCache(), storefront)
            out = await generate_for_app(gateway, APP_KEY, tmp_path / title, generator=generator, resolver=resolver)
            trees.append(out)

        first, second = trees
        assert (first / "App.js").read_text(encoding="utf-8") == (second / "App.js").read_text(encoding="utf-8")
        titles = [
            json.loads((out / "app-config.json").read_text(encoding="utf-8"))["catalogItems"][0]["title"]
            for out in trees
        ]
        assert titles == ["Tote", "Mug"]
