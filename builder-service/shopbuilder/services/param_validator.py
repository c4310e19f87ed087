"""
Parameter Validator - advisory checks of instance parameters against a kind's
property schema.

The page model accepts any parameter value; these checks exist for property
editors and for logging on save. Nothing here raises on bad values.
"""
import re
from typing import Any, Dict, List

from shopbuilder.models.schemas.component_catalog import ComponentKind, PropertySpec, PropertyType
from shopbuilder.utils.datetime_utils import from_iso_string

HEX_COLOR = re.compile(r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')

STRING_TYPES = {
    PropertyType.TEXT,
    PropertyType.RICHTEXT,
    PropertyType.SELECT,
    PropertyType.IMAGE,
    PropertyType.COLOR,
    PropertyType.DATETIME,
    PropertyType.PRODUCT,
    PropertyType.COLLECTION,
}


class ParamWarning:
    """Represents a parameter validation warning"""

    def __init__(self, level: str, param: str, message: str):
        self.level = level  # "info", "warning"
        self.param = param
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {
            'level': self.level,
            'param': self.param,
            'message': self.message,
        }

    def __str__(self) -> str:
        return f"[{self.level.upper()}] {self.param}: {self.message}"


def is_property_visible(prop: PropertySpec, params: Dict[str, Any]) -> bool:
    """Evaluate a property's visibility condition against current parameters."""
    cond = prop.visible_when
    if cond is None:
        return True
    return params.get(cond.depends_on_property) == cond.required_value


def visible_properties(kind: ComponentKind, params: Dict[str, Any]) -> List[PropertySpec]:
    """Properties an editor should show for the given parameter values."""
    return [prop for prop in kind.properties if is_property_visible(prop, params)]


def _check_value(prop: PropertySpec, value: Any) -> List[ParamWarning]:
    warnings: List[ParamWarning] = []

    if prop.type == PropertyType.BOOLEAN:
        if not isinstance(value, bool):
            warnings.append(ParamWarning("warning", prop.name, f"expected boolean, got {type(value).__name__}"))
        return warnings

    if prop.type == PropertyType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            warnings.append(ParamWarning("warning", prop.name, f"expected number, got {type(value).__name__}"))
            return warnings
        if prop.min is not None and value < prop.min:
            warnings.append(ParamWarning("warning", prop.name, f"{value} is below minimum {prop.min:g}"))
        if prop.max is not None and value > prop.max:
            warnings.append(ParamWarning("warning", prop.name, f"{value} is above maximum {prop.max:g}"))
        return warnings

    if prop.type in STRING_TYPES and not isinstance(value, str):
        warnings.append(ParamWarning("warning", prop.name, f"expected string, got {type(value).__name__}"))
        return warnings

    if prop.type == PropertyType.SELECT and prop.options and value not in prop.options:
        warnings.append(ParamWarning("warning", prop.name, f"{value!r} is not one of {prop.options}"))

    if prop.type == PropertyType.COLOR and value and not HEX_COLOR.match(value):
        warnings.append(ParamWarning("warning", prop.name, f"invalid hex color: {value}"))

    if prop.type == PropertyType.DATETIME and value:
        try:
            from_iso_string(value)
        except ValueError:
            warnings.append(ParamWarning("warning", prop.name, f"not an ISO 8601 date-time: {value}"))

    return warnings


def validate_params(kind: ComponentKind, params: Dict[str, Any]) -> List[ParamWarning]:
    """
    Check a parameter bag against the kind's property schema.

    Returns:
        List of warnings; empty when every value conforms
    """
    warnings: List[ParamWarning] = []

    for name in params:
        if kind.get_property(name) is None:
            warnings.append(ParamWarning("info", name, f"not a property of {kind.id}"))

    for prop in kind.properties:
        if prop.name not in params:
            warnings.append(ParamWarning("info", prop.name, "missing, default will not apply"))
            continue
        warnings.extend(_check_value(prop, params[prop.name]))

    return warnings
