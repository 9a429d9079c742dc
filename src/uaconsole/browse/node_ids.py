"""NodeId display formatting and root node resolution."""

from __future__ import annotations

import base64
from typing import Any, Callable, Dict

from asyncua import ua

from uaconsole.core.exceptions import ConfigurationError

ROOT_ALIASES: Dict[str, int] = {
    "root": ua.ObjectIds.RootFolder,
    "objects": ua.ObjectIds.ObjectsFolder,
    "objectsfolder": ua.ObjectIds.ObjectsFolder,
    "types": ua.ObjectIds.TypesFolder,
    "views": ua.ObjectIds.ViewsFolder,
    "server": ua.ObjectIds.Server,
}

def _numeric(identifier: Any) -> str:
    return f"i={int(identifier)}"

def _string(identifier: Any) -> str:
    return f"s={identifier}"

def _guid(identifier: Any) -> str:
    return f"g={identifier}"

def _bytestring(identifier: Any) -> str:
    return f"b={base64.b64encode(bytes(identifier)).decode('ascii')}"

_KIND_FORMATTERS: Dict[ua.NodeIdType, Callable[[Any], str]] = {
    ua.NodeIdType.TwoByte: _numeric,
    ua.NodeIdType.FourByte: _numeric,
    ua.NodeIdType.Numeric: _numeric,
    ua.NodeIdType.String: _string,
    ua.NodeIdType.Guid: _guid,
    ua.NodeIdType.ByteString: _bytestring,
}

def format_node_id(node_id: ua.NodeId) -> str:
    """Render ``node_id`` as ``[ns=<index>;<tag>=<value>]``.

    Never raises: identifiers that cannot be rendered with their own tag fall
    back to ``x=<repr>``.
    """
    namespace = getattr(node_id, "NamespaceIndex", 0)
    identifier = getattr(node_id, "Identifier", None)
    formatter = _KIND_FORMATTERS.get(getattr(node_id, "NodeIdType", None))  # type: ignore[arg-type]
    try:
        body = formatter(identifier) if formatter else f"x={identifier!r}"
    except (TypeError, ValueError):
        body = f"x={identifier!r}"
    return f"[ns={namespace};{body}]"

def node_key(node_id: ua.NodeId) -> str:
    """Stable identity key for a node, ignoring the NodeId encoding variant."""
    return format_node_id(node_id)

def parse_node_id(text: str) -> ua.NodeId:
    alias = ROOT_ALIASES.get(text.strip().lower())
    if alias is not None:
        return ua.NodeId(alias, 0)
    try:
        return ua.NodeId.from_string(text)
    except Exception as e:
        raise ConfigurationError(f"Invalid root node: {text}", context={"error": str(e)}) from e
