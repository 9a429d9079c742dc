from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional, Protocol

from asyncua import Client, ua
from asyncua.crypto import security_policies
import structlog

from uaconsole.core.exceptions import ConnectionError, ServiceError
from uaconsole.config.models import EndpointConfig, SecurityConfig, SecurityPolicy
from uaconsole.security.x509 import CertificateManager

logger = structlog.get_logger(__name__)

@dataclass(frozen=True)
class BrowseReference:
    target: ua.NodeId
    is_forward: bool

class Session(Protocol):
    """Read-only view of a connected OPC UA server used by the browse engine."""

    async def read_node_class(self, node_id: ua.NodeId) -> ua.NodeClass: ...

    async def read_browse_name(self, node_id: ua.NodeId) -> ua.QualifiedName: ...

    async def read_value(self, node_id: ua.NodeId) -> ua.Variant: ...

    async def browse(self, node_id: ua.NodeId) -> List[BrowseReference]: ...

def _status_from_exception(exc: BaseException) -> int:
    if isinstance(exc, ua.UaStatusCodeError):
        return int(getattr(exc, "code", ua.StatusCodes.Bad))
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ua.StatusCodes.BadTimeout
    return ua.StatusCodes.BadCommunicationError

class OpcUaSession:
    """``Session`` implementation backed by a connected ``asyncua.Client``."""

    def __init__(self, client: Client) -> None:
        self._client = client
        self.connected_at = datetime.now(timezone.utc)

    async def read_node_class(self, node_id: ua.NodeId) -> ua.NodeClass:
        data_value = await self._read(node_id, ua.AttributeIds.NodeClass)
        value = data_value.Value.Value if data_value.Value is not None else None
        try:
            return ua.NodeClass(value)
        except (TypeError, ValueError):
            logger.debug("node_class_unrecognised", node_id=node_id.to_string(), value=value)
            return ua.NodeClass.Unspecified

    async def read_browse_name(self, node_id: ua.NodeId) -> ua.QualifiedName:
        data_value = await self._read(node_id, ua.AttributeIds.BrowseName)
        value = data_value.Value.Value if data_value.Value is not None else None
        if not isinstance(value, ua.QualifiedName):
            raise ServiceError(ua.StatusCodes.BadTypeMismatch, context={"attribute": "BrowseName"})
        return value

    async def read_value(self, node_id: ua.NodeId) -> ua.Variant:
        data_value = await self._read(node_id, ua.AttributeIds.Value)
        return data_value.Value if data_value.Value is not None else ua.Variant()

    async def browse(self, node_id: ua.NodeId) -> List[BrowseReference]:
        node = self._client.get_node(node_id)
        try:
            descriptions = await node.get_references(
                refs=ua.ObjectIds.References,
                direction=ua.BrowseDirection.Both,
                includesubtypes=True,
                result_mask=ua.BrowseResultMask.All,
            )
        except (ua.UaError, OSError, asyncio.TimeoutError) as e:
            raise ServiceError(_status_from_exception(e), context={"service": "browse"}) from e
        return [
            BrowseReference(
                target=ua.NodeId(ref.NodeId.Identifier, ref.NodeId.NamespaceIndex, ref.NodeId.NodeIdType),
                is_forward=bool(ref.IsForward),
            )
            for ref in descriptions
        ]

    async def _read(self, node_id: ua.NodeId, attribute: ua.AttributeIds) -> ua.DataValue:
        node = self._client.get_node(node_id)
        try:
            data_value = await node.read_attribute(attribute, raise_on_bad_status=False)
        except (ua.UaError, OSError, asyncio.TimeoutError) as e:
            raise ServiceError(_status_from_exception(e), context={"attribute": attribute.name}) from e
        status = data_value.StatusCode
        if status is not None and not status.is_good():
            raise ServiceError(status.value, context={"attribute": attribute.name})
        return data_value

SECURITY_POLICY_CLASSES = {
    SecurityPolicy.BASIC128RSA15: "SecurityPolicyBasic128Rsa15",
    SecurityPolicy.BASIC256: "SecurityPolicyBasic256",
    SecurityPolicy.BASIC256SHA256: "SecurityPolicyBasic256Sha256",
    SecurityPolicy.AES128_SHA256_RSAOAEP: "SecurityPolicyAes128Sha256RsaOaep",
    SecurityPolicy.AES256_SHA256_RSAPSS: "SecurityPolicyAes256Sha256RsaPss",
}

async def _configure_security(client: Client, endpoint: EndpointConfig, cert_manager: CertificateManager) -> None:
    policy = getattr(security_policies, SECURITY_POLICY_CLASSES.get(endpoint.security_policy, ""), None)
    if policy is None:
        raise ConnectionError(f"Unsupported security policy: {endpoint.security_policy.value}")
    mode = getattr(ua.MessageSecurityMode, endpoint.security_mode.value, ua.MessageSecurityMode.SignAndEncrypt)
    await client.set_security(
        policy=policy,
        certificate=str(cert_manager.client_cert_path),
        private_key=str(cert_manager.client_key_path),
        mode=mode,
    )

@asynccontextmanager
async def open_session(endpoint: EndpointConfig, security: Optional[SecurityConfig] = None) -> AsyncIterator[OpcUaSession]:
    """Connect to ``endpoint`` and disconnect again when the block exits."""
    client = Client(url=endpoint.url, timeout=endpoint.timeout_ms / 1000)
    if endpoint.username:
        client.set_user(endpoint.username)
    if endpoint.password:
        client.set_password(endpoint.password)
    if endpoint.security_policy != SecurityPolicy.NONE:
        cert_manager = CertificateManager(security or SecurityConfig())
        await cert_manager.load_certificates()
        await _configure_security(client, endpoint, cert_manager)

    try:
        await client.connect()
    except (ua.UaError, OSError, asyncio.TimeoutError) as e:
        reason = str(e) or type(e).__name__
        logger.warning("endpoint_connect_failed", url=endpoint.url, error=reason)
        raise ConnectionError(reason, context={"url": endpoint.url}) from e

    logger.info("endpoint_connected", url=endpoint.url, timeout_ms=endpoint.timeout_ms)
    try:
        yield OpcUaSession(client)
    finally:
        try:
            await client.disconnect()
        except (ua.UaError, OSError, asyncio.TimeoutError) as e:
            logger.warning("endpoint_disconnect_failed", url=endpoint.url, error=str(e))
        logger.info("endpoint_disconnected", url=endpoint.url)
