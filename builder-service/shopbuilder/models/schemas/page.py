"""
Page composition models: apps, pages and the component instances placed on them.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from shopbuilder.models.schemas.component_catalog import slugify_name
from shopbuilder.utils.datetime_utils import utc_now


class ComponentInstance(BaseModel):
    """A placed occurrence of a component kind on a page"""
    instance_id: str = Field(..., min_length=1)
    kind_id: str = Field(..., min_length=1)
    params: Dict[str, Any] = Field(default_factory=dict)
    position: int = Field(..., ge=0)

    # Display metadata of the kind as it was stored; set by the persistence layer
    kind_type: Optional[str] = None
    kind_name: Optional[str] = None


class Page(BaseModel):
    """A named, ordered sequence of component instances"""
    id: Optional[str] = None
    app_key: Optional[str] = None
    name: str = Field(..., min_length=1)
    slug: str = ""
    instances: List[ComponentInstance] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def default_slug(self) -> 'Page':
        if not self.slug:
            self.slug = slugify_name(self.name)
        return self

    def ordered_instances(self) -> List[ComponentInstance]:
        return sorted(self.instances, key=lambda inst: inst.position)

    def find_instance(self, instance_id: str) -> Optional[ComponentInstance]:
        for instance in self.instances:
            if instance.instance_id == instance_id:
                return instance
        return None


class ThemePreset(BaseModel):
    """Color and font constants for a generated app"""
    id: str = "modern"
    name: str = "Modern"
    primary_color: str = Field("#007AFF", pattern=r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')
    secondary_color: str = Field("#5856D6", pattern=r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')
    background_color: str = Field("#FFFFFF", pattern=r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')
    text_color: str = Field("#000000", pattern=r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')
    font_family: str = "Inter"


THEME_PRESETS: Dict[str, ThemePreset] = {
    "modern": ThemePreset(),
    "elegant": ThemePreset(
        id="elegant", name="Elegant",
        primary_color="#1C1C1E", secondary_color="#8E8E93",
        background_color="#F2F2F7", text_color="#1C1C1E",
        font_family="SF Pro Display",
    ),
    "vibrant": ThemePreset(
        id="vibrant", name="Vibrant",
        primary_color="#FF3B30", secondary_color="#FF9500",
        background_color="#FFFFFF", text_color="#1C1C1E",
        font_family="Roboto",
    ),
    "minimal": ThemePreset(
        id="minimal", name="Minimal",
        primary_color="#34C759", secondary_color="#00C7BE",
        background_color="#FAFAFA", text_color="#2C2C2E",
        font_family="Helvetica Neue",
    ),
}


class AppRecord(BaseModel):
    """The ownership boundary for pages, keyed by the shop domain"""
    id: str
    app_key: str
    name: str
    bundle_id: str
    package_name: Optional[str] = None
    theme: ThemePreset = Field(default_factory=ThemePreset)
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_app_key(cls, app_id: str, app_key: str) -> 'AppRecord':
        """Default metadata for an app created implicitly on first save"""
        return cls(
            id=app_id,
            app_key=app_key,
            name=f"{app_key} Mobile App",
            bundle_id=f"com.{app_key.replace('.', '', 1)}.app",
        )

    @property
    def resolved_package_name(self) -> str:
        return self.package_name or self.bundle_id.replace('.', '_').lower()
