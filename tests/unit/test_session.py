from types import SimpleNamespace
from typing import Dict, List, Tuple

import pytest
from asyncua import ua

from conftest import collect, nid
from uaconsole.browse import TraversalContext, browse_address_space
from uaconsole.browse.node_ids import node_key
from uaconsole.core.exceptions import ServiceError
from uaconsole.core.session import OpcUaSession


class StubNode:
    def __init__(self, client: "StubClient", node_id: ua.NodeId) -> None:
        self._client = client
        self._key = node_key(node_id)

    async def read_attribute(self, attribute, raise_on_bad_status=True):
        return self._client.attributes[(self._key, attribute)]

    async def get_references(self, **kwargs):
        return self._client.references.get(self._key, [])


class StubClient:
    """Answers reads with canned DataValues, the way a connected client would."""

    def __init__(self) -> None:
        self.attributes: Dict[Tuple[str, ua.AttributeIds], ua.DataValue] = {}
        self.references: Dict[str, List[SimpleNamespace]] = {}

    def get_node(self, node_id: ua.NodeId) -> StubNode:
        return StubNode(self, node_id)

    def add(self, node_id: ua.NodeId, node_class, browse_name) -> None:
        key = node_key(node_id)
        self.attributes[(key, ua.AttributeIds.NodeClass)] = ua.DataValue(node_class)
        self.attributes[(key, ua.AttributeIds.BrowseName)] = ua.DataValue(browse_name)

    def link(self, parent: ua.NodeId, child: ua.NodeId) -> None:
        self.references.setdefault(node_key(parent), []).append(SimpleNamespace(NodeId=child, IsForward=True))


def _node_class(value: int) -> ua.Variant:
    return ua.Variant(value, ua.VariantType.Int32)


def _browse_name(name: str) -> ua.Variant:
    return ua.Variant(ua.QualifiedName(name, 2), ua.VariantType.QualifiedName)


@pytest.fixture
def stub_client() -> StubClient:
    client = StubClient()
    client.add(nid("R"), _node_class(ua.NodeClass.Object.value), _browse_name("R"))
    client.add(nid("Good"), _node_class(ua.NodeClass.Object.value), _browse_name("Good"))
    client.link(nid("R"), nid("Bad"))
    client.link(nid("R"), nid("Good"))
    return client


@pytest.mark.asyncio
async def test_out_of_range_node_class_renders_unknown(stub_client):
    stub_client.add(nid("Bad"), _node_class(3), _browse_name("Bad"))
    session = OpcUaSession(stub_client)

    assert await session.read_node_class(nid("Bad")) == ua.NodeClass.Unspecified
    lines = await collect(browse_address_space(session, nid("R"), TraversalContext(max_depth=3)))
    assert lines == [
        "R [ns=2;s=R] (Object)",
        "  Bad [ns=2;s=Bad] (Unknown)",
        "  Good [ns=2;s=Good] (Object)",
    ]


@pytest.mark.asyncio
async def test_empty_node_class_renders_unknown(stub_client):
    stub_client.add(nid("Bad"), ua.Variant(), _browse_name("Bad"))
    session = OpcUaSession(stub_client)

    assert await session.read_node_class(nid("Bad")) == ua.NodeClass.Unspecified


@pytest.mark.asyncio
async def test_empty_browse_name_skips_node(stub_client):
    stub_client.add(nid("Bad"), _node_class(ua.NodeClass.Object.value), ua.Variant())
    session = OpcUaSession(stub_client)

    with pytest.raises(ServiceError) as exc_info:
        await session.read_browse_name(nid("Bad"))
    assert exc_info.value.status_code == ua.StatusCodes.BadTypeMismatch

    lines = await collect(browse_address_space(session, nid("R"), TraversalContext(max_depth=3)))
    assert lines == [
        "R [ns=2;s=R] (Object)",
        "  Good [ns=2;s=Good] (Object)",
    ]
