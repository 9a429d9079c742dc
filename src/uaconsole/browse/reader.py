from __future__ import annotations

from dataclasses import dataclass
from typing import List

import structlog
from asyncua import ua

from uaconsole.browse.node_ids import format_node_id
from uaconsole.core.exceptions import AttributeReadError, ServiceError, ValueReadError
from uaconsole.core.session import BrowseReference, Session

logger = structlog.get_logger(__name__)

BROWSABLE_CLASSES = frozenset({ua.NodeClass.Object, ua.NodeClass.View})

@dataclass(frozen=True)
class NodeAttributes:
    node_class: ua.NodeClass
    browse_name: ua.QualifiedName

class AttributeReader:
    """Per-node reads against a ``Session``, translated into browse-level failures."""

    def __init__(self, session: Session) -> None:
        self._session = session

    async def read_attributes(self, node_id: ua.NodeId) -> NodeAttributes:
        try:
            node_class = await self._session.read_node_class(node_id)
            browse_name = await self._session.read_browse_name(node_id)
        except ServiceError as e:
            raise AttributeReadError(
                e.status_code,
                f"Cannot read attributes of {format_node_id(node_id)}",
                context=e.context,
            ) from e
        return NodeAttributes(node_class=node_class, browse_name=browse_name)

    async def read_value(self, node_id: ua.NodeId) -> ua.Variant:
        try:
            variant = await self._session.read_value(node_id)
        except ServiceError as e:
            raise ValueReadError(e.status_code, context={"node_id": format_node_id(node_id)}) from e
        if variant is None or variant.VariantType == ua.VariantType.Null or variant.Value is None:
            # an empty value is reported like a failed read carrying the Good status
            raise ValueReadError(ua.StatusCodes.Good, "Empty value", context={"node_id": format_node_id(node_id)})
        return variant

    async def browse_children(self, node_id: ua.NodeId, node_class: ua.NodeClass) -> List[BrowseReference]:
        if node_class not in BROWSABLE_CLASSES:
            return []
        try:
            return list(await self._session.browse(node_id))
        except ServiceError as e:
            logger.debug("browse_failed", node_id=format_node_id(node_id), status=f"0x{e.status_code:08X}")
            return []
