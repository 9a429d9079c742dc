"""Address space traversal and value rendering."""

from .node_ids import format_node_id, parse_node_id
from .reader import AttributeReader, NodeAttributes
from .traversal import BrowseTraversal, TraversalContext, browse_address_space, node_class_label
from .variants import VariantDecoder, format_read_error

__all__ = [
    "AttributeReader",
    "BrowseTraversal",
    "NodeAttributes",
    "TraversalContext",
    "VariantDecoder",
    "browse_address_space",
    "format_node_id",
    "format_read_error",
    "node_class_label",
    "parse_node_id",
]
