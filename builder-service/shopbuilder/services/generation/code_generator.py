"""
Code Generator - materializes a page as a React Native project tree.

Flow:
1. Copy the skeleton project shipped as package data
2. Render one JSX fragment per instance, in position order
3. Write App.js, the theme constants, project metadata and app-config.json
4. Swap the finished tree into ``output_root/<sanitized app key>``

Regenerating the same page yields the same tree apart from the timestamp in
the App.js header and ``generatedAt`` in app-config.json.
"""
import json
import re
import shutil
from datetime import datetime
from pathlib import Path
from string import Template
from typing import Any, Callable, Dict, List, Optional

from shopbuilder.config import settings
from shopbuilder.core.errors import GenerationAborted, PageNotFound, PersistenceFailure
from shopbuilder.models.schemas.component_catalog import KindId
from shopbuilder.models.schemas.live_config import CatalogItem
from shopbuilder.models.schemas.page import AppRecord, Page, ThemePreset
from shopbuilder.services.generation.fragment_templates import (
    component_imports,
    js_literal,
    render_fragment,
)
from shopbuilder.utils.datetime_utils import to_iso_string, utc_now
from shopbuilder.utils.logging import get_logger, trace_sync

logger = get_logger(__name__)

DEFAULT_SKELETON_PATH = Path(__file__).resolve().parent.parent.parent / "templates" / "skeleton"

APP_TEMPLATE = Template("""\
// Generated by Shop App Builder at $generated_at
import React from 'react';
import { ScrollView, StyleSheet, View } from 'react-native';
import AppNavigator from './src/navigation/AppNavigator';
import theme from './src/theme';
import appConfig from './app-config.json';
$imports

const products = appConfig.catalogItems || [];

const HomeScreen = () => (
  <ScrollView style={styles.container}>
$fragments
  </ScrollView>
);

const App = () => (
  <AppNavigator screens={[{ name: $screen_name, component: HomeScreen }]} />
);

const styles = StyleSheet.create({
  container: {
    flex: 1,
    backgroundColor: theme.colors.background,
  },
});

export default App;
""")

THEME_TEMPLATE = Template("""\
export const theme = {
  colors: {
    primary: $primary,
    secondary: $secondary,
    background: $background,
    text: $text,
    white: '#FFFFFF',
    black: '#000000',
    gray: '#666666',
  },
  fonts: {
    family: $font_family,
    sizes: { small: 12, medium: 16, large: 20, xlarge: 24 },
  },
  spacing: { xs: 4, sm: 8, md: 16, lg: 24, xl: 32 },
};

export default theme;
""")


def sanitize_app_key(app_key: str) -> str:
    """Directory and package-name safe form of an app key"""
    return re.sub(r"[^a-z0-9]+", "-", app_key.lower()).strip("-") or "app"


def _dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


class CodeGenerator:
    """
    Turns a page and its app metadata into a project directory.

    Unknown kinds degrade to a neutral fragment and are logged; only a
    missing skeleton or an unwritable output root abort the run.
    """

    def __init__(
        self,
        skeleton_path: Optional[Path] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.skeleton_path = Path(skeleton_path) if skeleton_path else DEFAULT_SKELETON_PATH
        self.clock = clock

    def output_dir(self, app: AppRecord, output_root: Path) -> Path:
        return Path(output_root) / sanitize_app_key(app.app_key)

    # ------------------------------------------------------------------
    # file contents
    # ------------------------------------------------------------------

    def render_app_js(self, page: Page, generated_at: str) -> str:
        instances = page.ordered_instances()

        degraded = [inst.kind_id for inst in instances if KindId.parse(inst.kind_id) is None]
        if degraded:
            logger.warning(
                "generator.kind.unknown",
                message="Unknown kinds rendered as empty views",
                extra={"page_id": page.id, "kind_ids": degraded}
            )

        fragments = "\n".join(
            f"    {render_fragment(inst.kind_id, inst.params)}" for inst in instances
        )
        return APP_TEMPLATE.substitute(
            generated_at=generated_at,
            imports="\n".join(component_imports([inst.kind_id for inst in instances])),
            fragments=fragments,
            screen_name=js_literal(page.name),
        )

    def render_theme_js(self, theme: ThemePreset) -> str:
        return THEME_TEMPLATE.substitute(
            primary=js_literal(theme.primary_color),
            secondary=js_literal(theme.secondary_color),
            background=js_literal(theme.background_color),
            text=js_literal(theme.text_color),
            font_family=js_literal(theme.font_family),
        )

    def build_app_config(
        self,
        page: Page,
        app: AppRecord,
        generated_at: str,
        catalog_items: List[CatalogItem]
    ) -> Dict[str, Any]:
        return {
            "name": app.name,
            "bundleId": app.bundle_id,
            "packageName": app.resolved_package_name,
            "appKey": app.app_key,
            "theme": app.theme.model_dump(mode="json"),
            "page": {
                "id": page.id,
                "name": page.name,
                "slug": page.slug,
                "components": [
                    {
                        "id": inst.instance_id,
                        "kindId": inst.kind_id,
                        "type": inst.kind_type,
                        "props": inst.params,
                        "order": inst.position,
                    }
                    for inst in page.ordered_instances()
                ],
            },
            "catalogItems": [item.to_wire() for item in catalog_items],
            "generatedAt": generated_at,
        }

    def _update_metadata(self, file_path: Path, app: AppRecord) -> None:
        data = json.loads(file_path.read_text(encoding="utf-8"))
        data["name"] = sanitize_app_key(app.name)
        data["displayName"] = app.name
        file_path.write_text(_dump_json(data), encoding="utf-8")

    # ------------------------------------------------------------------
    # generation
    # ------------------------------------------------------------------

    @trace_sync("generator.generate")
    def generate(
        self,
        page: Page,
        app_metadata: AppRecord,
        output_root: Path,
        catalog_items: Optional[List[CatalogItem]] = None
    ) -> Path:
        """
        Write the project tree for ``page`` and return its directory.

        Raises:
            GenerationAborted: skeleton missing or output not writable
        """
        if not self.skeleton_path.is_dir():
            raise GenerationAborted(f"Skeleton project not found at {self.skeleton_path}")

        target = self.output_dir(app_metadata, output_root)
        staging = target.with_name(target.name + ".tmp")
        generated_at = to_iso_string(self.clock())

        try:
            if staging.exists():
                shutil.rmtree(staging)
            shutil.copytree(self.skeleton_path, staging)

            (staging / "App.js").write_text(self.render_app_js(page, generated_at), encoding="utf-8")
            (staging / "src" / "theme" / "index.js").write_text(
                self.render_theme_js(app_metadata.theme), encoding="utf-8"
            )
            self._update_metadata(staging / "package.json", app_metadata)
            self._update_metadata(staging / "app.json", app_metadata)

            app_config = self.build_app_config(page, app_metadata, generated_at, catalog_items or [])
            (staging / "app-config.json").write_text(_dump_json(app_config), encoding="utf-8")

            if target.exists():
                shutil.rmtree(target)
            staging.rename(target)
        except OSError as e:
            raise GenerationAborted(f"Cannot write generated app to {target}: {e}") from e

        logger.info(
            "generator.app.generated",
            extra={
                "app_key": app_metadata.app_key,
                "page_id": page.id,
                "instances": len(page.instances),
                "path": str(target),
            }
        )
        return target


async def generate_for_app(
    gateway,
    app_key_or_id: str,
    output_root: Optional[Path] = None,
    preview_slug: Optional[str] = None,
    generator: Optional[CodeGenerator] = None,
    resolver=None,
) -> Path:
    """
    Load the current page of an app and generate its project.

    An app without pages still generates, with an empty home screen.

    With a ``resolver`` the resolved catalog is written into
    ``app-config.json``, so the catalog is an input too: two runs on the
    same page and metadata give the same tree only while the storefront
    data is unchanged.

    Raises:
        GenerationAborted: unknown app, storage failure or write failure
    """
    output_root = Path(output_root or settings.generator_output_root)
    preview_slug = preview_slug or settings.preview_slug
    if generator is None:
        skeleton = settings.generator_skeleton_path
        generator = CodeGenerator(Path(skeleton) if skeleton else None)

    try:
        app = await gateway.get_app(app_key_or_id)
        if app is None:
            raise GenerationAborted(f"Mobile app not found: {app_key_or_id}")

        try:
            page = await gateway.load_current_page(app.app_key, preview_slug)
        except PageNotFound:
            logger.warning("generator.page.missing", extra={"app_key": app.app_key})
            page = Page(name="Home", app_key=app.app_key)
    except PersistenceFailure as e:
        raise GenerationAborted(f"Cannot load app {app_key_or_id}: {e}") from e

    catalog_items: List[CatalogItem] = []
    if resolver is not None:
        catalog_items = (await resolver.resolve(app.app_key)).items

    return generator.generate(page, app, output_root, catalog_items)
