from __future__ import annotations

from pathlib import Path
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import serialization

from uaconsole.core.exceptions import SecurityError

if TYPE_CHECKING:
    from uaconsole.config.models import SecurityConfig

logger = structlog.get_logger(__name__)

class CertificateManager:
    """Loads and checks the client certificate used for secured endpoints."""

    def __init__(self, config: SecurityConfig) -> None:
        self._config = config
        self._client_cert: Optional[x509.Certificate] = None

    @property
    def client_cert_path(self) -> Optional[Path]:
        return self._config.client_certificate_path

    @property
    def client_key_path(self) -> Optional[Path]:
        return self._config.client_private_key_path

    async def load_certificates(self) -> None:
        cert_path = self.client_cert_path
        key_path = self.client_key_path
        if not cert_path or not key_path:
            raise SecurityError("Client certificate and private key required for a secured endpoint")
        if not Path(cert_path).exists():
            raise SecurityError(f"Certificate not found: {cert_path}")
        if not Path(key_path).exists():
            raise SecurityError(f"Private key not found: {key_path}")

        try:
            self._client_cert = _load_certificate(Path(cert_path).read_bytes())
            _load_private_key(Path(key_path).read_bytes())
        except (ValueError, TypeError) as e:
            raise SecurityError(f"Failed to load certificates: {e}") from e

        self._validate_certificate()
        logger.info(
            "certificates_loaded",
            subject=self._client_cert.subject.rfc4514_string(),
            expires=self._client_cert.not_valid_after_utc.isoformat(),
        )

    def _validate_certificate(self) -> None:
        if not self._client_cert:
            return
        now = datetime.now(timezone.utc)
        if now > self._client_cert.not_valid_after_utc:
            raise SecurityError(
                "Client certificate has expired",
                context={"expired": self._client_cert.not_valid_after_utc.isoformat()},
            )
        if now < self._client_cert.not_valid_before_utc:
            raise SecurityError("Client certificate is not yet valid")

def _load_certificate(data: bytes) -> x509.Certificate:
    # asyncua accepts both PEM and DER client certificates
    if data.lstrip().startswith(b"-----BEGIN"):
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)

def _load_private_key(data: bytes) -> object:
    if data.lstrip().startswith(b"-----BEGIN"):
        return serialization.load_pem_private_key(data, password=None)
    return serialization.load_der_private_key(data, password=None)
