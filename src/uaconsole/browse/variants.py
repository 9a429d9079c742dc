from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict

from asyncua import ua

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

def _render_boolean(value: Any) -> str:
    return "true" if value else "false"

def _render_unsigned(value: Any) -> str:
    return str(int(value))

def _render_float(value: Any) -> str:
    return f"{float(value):.2f}"

def _render_datetime(value: Any) -> str:
    if not isinstance(value, datetime):
        raise TypeError(f"Expected datetime, got {type(value).__name__}")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(DATETIME_FORMAT)

DEFAULT_RENDERERS: Dict[ua.VariantType, Callable[[Any], str]] = {
    ua.VariantType.Boolean: _render_boolean,
    ua.VariantType.UInt16: _render_unsigned,
    ua.VariantType.UInt32: _render_unsigned,
    ua.VariantType.Float: _render_float,
    ua.VariantType.DateTime: _render_datetime,
}

def type_name(variant: ua.Variant) -> str:
    """Declared type name of ``variant`` for the opaque placeholder."""
    variant_type = getattr(variant, "VariantType", None)
    if variant_type == ua.VariantType.ExtensionObject:
        value = variant.Value
        if value is not None and not isinstance(value, (list, tuple, ua.ExtensionObject)):
            return type(value).__name__
    name = getattr(variant_type, "name", None)
    return name or type(getattr(variant, "Value", None)).__name__

def is_array(variant: ua.Variant) -> bool:
    return bool(getattr(variant, "is_array", False)) or isinstance(variant.Value, (list, tuple))

def format_read_error(status_code: int) -> str:
    return f"[Read error: 0x{status_code & 0xFFFFFFFF:08X}]"

class VariantDecoder:
    """Renders scalar variants of a known set of kinds, and a placeholder for the rest."""

    def __init__(self) -> None:
        self._renderers: Dict[ua.VariantType, Callable[[Any], str]] = dict(DEFAULT_RENDERERS)

    def register_renderer(self, variant_type: ua.VariantType, renderer: Callable[[Any], str]) -> None:
        self._renderers[variant_type] = renderer

    def decode(self, variant: ua.Variant) -> str:
        renderer = self._renderers.get(getattr(variant, "VariantType", None))  # type: ignore[arg-type]
        if renderer is None or is_array(variant):
            return f"[{type_name(variant)}]"
        try:
            return renderer(variant.Value)
        except (TypeError, ValueError, OverflowError):
            return f"[{type_name(variant)}]"
