import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
import structlog
from asyncua import Server, ua

from uaconsole.browse.node_ids import node_key
from uaconsole.core.exceptions import ServiceError
from uaconsole.core.session import BrowseReference

SIMULATOR_URL = "opc.tcp://127.0.0.1:48410"
OBJECTS = ua.NodeId(ua.ObjectIds.ObjectsFolder, 0)


@dataclass
class FakeNode:
    node_class: ua.NodeClass
    name: str
    value: Optional[ua.Variant] = None
    value_status: Optional[int] = None
    attribute_status: Optional[int] = None
    browse_status: Optional[int] = None
    references: List[BrowseReference] = field(default_factory=list)


class FakeSession:
    """In-memory address space implementing the Session protocol."""

    def __init__(self) -> None:
        self.nodes: Dict[str, FakeNode] = {}
        self.calls: List[Tuple[str, str]] = []
        self.connected_at = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def add(self, node_id: ua.NodeId, node_class: ua.NodeClass, name: str, **kwargs) -> FakeNode:
        node = FakeNode(node_class=node_class, name=name, **kwargs)
        self.nodes[node_key(node_id)] = node
        return node

    def link(self, parent: ua.NodeId, child: ua.NodeId, is_forward: bool = True, index: Optional[int] = None) -> None:
        references = self.nodes[node_key(parent)].references
        reference = BrowseReference(target=child, is_forward=is_forward)
        if index is None:
            references.append(reference)
        else:
            references.insert(index, reference)

    def called(self, method: str, node_id: ua.NodeId) -> bool:
        return (method, node_key(node_id)) in self.calls

    def _get(self, method: str, node_id: ua.NodeId) -> FakeNode:
        self.calls.append((method, node_key(node_id)))
        node = self.nodes.get(node_key(node_id))
        if node is None:
            raise ServiceError(ua.StatusCodes.BadNodeIdUnknown)
        return node

    async def read_node_class(self, node_id: ua.NodeId) -> ua.NodeClass:
        node = self._get("read_node_class", node_id)
        if node.attribute_status is not None:
            raise ServiceError(node.attribute_status)
        return node.node_class

    async def read_browse_name(self, node_id: ua.NodeId) -> ua.QualifiedName:
        node = self._get("read_browse_name", node_id)
        if node.attribute_status is not None:
            raise ServiceError(node.attribute_status)
        return ua.QualifiedName(node.name, node_id.NamespaceIndex)

    async def read_value(self, node_id: ua.NodeId) -> ua.Variant:
        node = self._get("read_value", node_id)
        if node.value_status is not None:
            raise ServiceError(node.value_status)
        return node.value if node.value is not None else ua.Variant()

    async def browse(self, node_id: ua.NodeId) -> List[BrowseReference]:
        node = self._get("browse", node_id)
        if node.browse_status is not None:
            raise ServiceError(node.browse_status)
        return list(node.references)


def nid(name: str, ns: int = 2) -> ua.NodeId:
    return ua.NodeId(name, ns, ua.NodeIdType.String)


async def collect(lines) -> List[str]:
    return [line async for line in lines]


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def plant_session(fake_session: FakeSession) -> FakeSession:
    """Objects folder with an empty object, a float variable and an object pointing back at the root."""
    fake_session.add(OBJECTS, ua.NodeClass.Object, "Objects")
    fake_session.add(nid("A"), ua.NodeClass.Object, "A")
    fake_session.add(nid("B"), ua.NodeClass.Variable, "B", value=ua.Variant(3.14159, ua.VariantType.Float))
    fake_session.add(nid("C"), ua.NodeClass.Object, "C")
    fake_session.link(OBJECTS, nid("A"))
    fake_session.link(OBJECTS, nid("B"))
    fake_session.link(OBJECTS, nid("C"))
    fake_session.link(nid("C"), OBJECTS, is_forward=False)
    return fake_session


@pytest_asyncio.fixture
async def opcua_simulator() -> AsyncGenerator[Tuple[Server, int], None]:
    """
    Spin up a simulated OPC UA server for integration tests.
    """
    server = Server()
    await server.init()

    server.set_endpoint(SIMULATOR_URL)
    server.set_server_name("Test Server")

    idx = await server.register_namespace("http://test.example.org")

    objects = server.nodes.objects
    plant = await objects.add_object(ua.NodeId("Plant", idx, ua.NodeIdType.String), "Plant")

    await plant.add_variable(ua.NodeId("Running", idx, ua.NodeIdType.String), "Running", ua.Variant(True, ua.VariantType.Boolean))
    await plant.add_variable(ua.NodeId("Count", idx, ua.NodeIdType.String), "Count", ua.Variant(42, ua.VariantType.UInt16))
    await plant.add_variable(ua.NodeId("Total", idx, ua.NodeIdType.String), "Total", ua.Variant(70000, ua.VariantType.UInt32))
    await plant.add_variable(
        ua.NodeId("Temperature", idx, ua.NodeIdType.String), "Temperature", ua.Variant(3.14159, ua.VariantType.Float)
    )
    await plant.add_variable(
        ua.NodeId("Started", idx, ua.NodeIdType.String),
        "Started",
        ua.Variant(datetime(2025, 1, 1, tzinfo=timezone.utc), ua.VariantType.DateTime),
    )
    await plant.add_variable(ua.NodeId("Label", idx, ua.NodeIdType.String), "Label", ua.Variant("line-1", ua.VariantType.String))
    line = await plant.add_object(ua.NodeId("Line", idx, ua.NodeIdType.String), "Line")
    await line.add_variable(ua.NodeId(5001, idx, ua.NodeIdType.Numeric), "Speed", ua.Variant(1200, ua.VariantType.UInt32))

    await server.start()

    yield server, idx

    await server.stop()
