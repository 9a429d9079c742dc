from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, AsyncIterator, Callable, Dict, Optional, Tuple

import structlog
from asyncua import ua

from uaconsole.browse.node_ids import format_node_id, node_key
from uaconsole.browse.reader import AttributeReader, NodeAttributes
from uaconsole.browse.variants import VariantDecoder, format_read_error
from uaconsole.core.exceptions import AttributeReadError, ValueReadError

if TYPE_CHECKING:
    from uaconsole.core.session import Session
    from uaconsole.observability.metrics import MetricsCollector

logger = structlog.get_logger(__name__)

INDENT = "  "
MAX_INDENT_LEVELS = 30

NODE_CLASS_LABELS: Dict[ua.NodeClass, str] = {
    ua.NodeClass.Object: "Object",
    ua.NodeClass.Variable: "Variable",
    ua.NodeClass.Method: "Method",
    ua.NodeClass.ObjectType: "ObjectType",
    ua.NodeClass.VariableType: "VariableType",
    ua.NodeClass.ReferenceType: "ReferenceType",
    ua.NodeClass.DataType: "DataType",
    ua.NodeClass.View: "View",
}

def node_class_label(node_class: ua.NodeClass) -> str:
    return NODE_CLASS_LABELS.get(node_class, "Unknown")

@dataclass(frozen=True)
class TraversalContext:
    depth: int = 0
    max_depth: int = 10
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.depth < 0 or self.max_depth < 0:
            raise ValueError("depth and max_depth must not be negative")
        if self.depth > self.max_depth:
            raise ValueError(f"depth {self.depth} exceeds max_depth {self.max_depth}")

    @property
    def at_limit(self) -> bool:
        return self.depth >= self.max_depth

    @property
    def indent(self) -> str:
        return INDENT * min(self.depth, MAX_INDENT_LEVELS)

    def descend(self) -> TraversalContext:
        return replace(self, depth=self.depth + 1)

class BrowseTraversal:
    """Depth-first, pre-order walk of the address space that yields one line per readable node.

    Per-node failures never escape: a node whose class or browse name cannot be
    read is dropped together with its subtree, a failed value read is rendered
    inline. Only forward references are followed and descent stops at
    ``max_depth``. With ``cycle_guard`` enabled a reference back to a node on the
    current path is not followed either.
    """

    def __init__(
        self,
        reader: AttributeReader,
        decoder: Optional[VariantDecoder] = None,
        metrics: Optional[MetricsCollector] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
        cycle_guard: bool = True,
    ) -> None:
        self._reader = reader
        self._decoder = decoder or VariantDecoder()
        self._metrics = metrics
        self._should_cancel = should_cancel
        self._cycle_guard = cycle_guard
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def traverse(self, root: ua.NodeId, context: TraversalContext) -> AsyncIterator[str]:
        return self._visit(root, context, ())

    async def _visit(self, node_id: ua.NodeId, context: TraversalContext, ancestors: Tuple[str, ...]) -> AsyncIterator[str]:
        if self._cancel_requested():
            return
        try:
            attributes = await self._reader.read_attributes(node_id)
        except AttributeReadError as e:
            logger.debug("node_skipped", node_id=format_node_id(node_id), status=f"0x{e.status_code:08X}")
            if self._metrics:
                self._metrics.record_skipped("attribute_read")
            return

        yield await self._render(node_id, attributes, context)
        if self._metrics:
            self._metrics.record_rendered(context.depth)

        if context.at_limit:
            return
        references = await self._reader.browse_children(node_id, attributes.node_class)
        if context.verbose and context.depth == 0:
            forward = sum(1 for reference in references if reference.is_forward)
            if forward:
                yield f"{INDENT}Found {forward} references to browse"

        path = ancestors + (node_key(node_id),)
        for reference in references:
            if self._cancelled:
                return
            if not reference.is_forward:
                continue
            if self._cycle_guard and node_key(reference.target) in path:
                logger.debug("cycle_skipped", node_id=format_node_id(reference.target), depth=context.depth + 1)
                if self._metrics:
                    self._metrics.record_skipped("cycle")
                continue
            async for line in self._visit(reference.target, context.descend(), path):
                yield line

    async def _render(self, node_id: ua.NodeId, attributes: NodeAttributes, context: TraversalContext) -> str:
        name = attributes.browse_name.Name or ""
        line = f"{context.indent}{name} {format_node_id(node_id)} ({node_class_label(attributes.node_class)})"
        if attributes.node_class != ua.NodeClass.Variable:
            return line
        try:
            variant = await self._reader.read_value(node_id)
        except ValueReadError as e:
            if self._metrics:
                self._metrics.record_value_error()
            return f"{line} {format_read_error(e.status_code)}"
        return f"{line} = {self._decoder.decode(variant)}"

    def _cancel_requested(self) -> bool:
        if not self._cancelled and self._should_cancel is not None and self._should_cancel():
            self._cancelled = True
            logger.info("traversal_cancelled")
        return self._cancelled

def browse_address_space(
    session: Session,
    root: ua.NodeId,
    context: TraversalContext,
    **options: object,
) -> AsyncIterator[str]:
    """Shortcut for ``BrowseTraversal(AttributeReader(session), ...).traverse(root, context)``."""
    traversal = BrowseTraversal(AttributeReader(session), **options)  # type: ignore[arg-type]
    return traversal.traverse(root, context)
