from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from uaconsole.core.exceptions import ConfigurationError

class SecurityPolicy(str, Enum):
    """OPC UA Security Policies."""
    NONE = "None"
    BASIC128RSA15 = "Basic128Rsa15"
    BASIC256 = "Basic256"
    BASIC256SHA256 = "Basic256Sha256"
    AES128_SHA256_RSAOAEP = "Aes128_Sha256_RsaOaep"
    AES256_SHA256_RSAPSS = "Aes256_Sha256_RsaPss"

class MessageSecurityMode(str, Enum):
    """OPC UA Message Security Modes."""
    NONE = "None"
    SIGN = "Sign"
    SIGN_AND_ENCRYPT = "SignAndEncrypt"

class EndpointConfig(BaseModel):
    """Configuration for the OPC UA endpoint being inspected."""
    url: str = Field(..., description="OPC UA server URL")
    timeout_ms: int = Field(default=5000, gt=0)
    security_policy: SecurityPolicy = Field(default=SecurityPolicy.NONE)
    security_mode: MessageSecurityMode = Field(default=MessageSecurityMode.NONE)
    username: Optional[str] = None
    password: Optional[str] = None

    @field_validator("url")
    @classmethod
    def validate_opcua_url(cls, v: str) -> str:
        if not v.startswith("opc.tcp://"):
            raise ValueError("OPC UA URL must start with opc.tcp://")
        return v

    @model_validator(mode="after")
    def validate_security_pair(self) -> EndpointConfig:
        if self.security_policy != SecurityPolicy.NONE and self.security_mode == MessageSecurityMode.NONE:
            raise ValueError("Security mode required when a security policy is set")
        return self

class SecurityConfig(BaseModel):
    """Client certificate configuration."""
    client_certificate_path: Optional[Path] = None
    client_private_key_path: Optional[Path] = None

    @model_validator(mode="after")
    def validate_cert_pair(self) -> SecurityConfig:
        if self.client_certificate_path and not self.client_private_key_path:
            raise ValueError("Private key required when certificate is provided")
        if self.client_private_key_path and not self.client_certificate_path:
            raise ValueError("Certificate required when private key is provided")
        return self

class BrowseConfig(BaseModel):
    """Address space traversal options."""
    root_node: str = Field(default="ObjectsFolder", description="Alias or NodeId string of the start node")
    max_depth: int = Field(default=10, ge=0, le=256)
    verbose: bool = False
    cycle_guard: bool = True

class ObservabilityConfig(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    log_format: Literal["console", "json"] = "console"
    metrics_file: Optional[Path] = None

class ConsoleSettings(BaseSettings):
    """Root configuration."""
    model_config = SettingsConfigDict(
        env_prefix="UACONSOLE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    endpoint: EndpointConfig
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    browse: BrowseConfig = Field(default_factory=BrowseConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> ConsoleSettings:
        return cls.load(Path(path))

    @classmethod
    def load(cls, path: Optional[Path] = None, overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> ConsoleSettings:
        """Build settings from an optional YAML file, environment and explicit overrides.

        ``None`` values in ``overrides`` are ignored so that unset CLI options
        do not mask file or environment values.
        """
        data: Dict[str, Any] = {}
        if path:
            try:
                with open(path) as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Cannot read configuration file {path}", context={"error": str(e)}) from e

        for section, values in (overrides or {}).items():
            merged = dict(data.get(section) or {})
            merged.update({k: v for k, v in values.items() if v is not None})
            if merged:
                data[section] = merged

        try:
            return cls(**data)
        except ValidationError as e:
            errors = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            raise ConfigurationError(f"Invalid configuration: {errors}") from e
