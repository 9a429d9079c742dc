"""
Custom exception hierarchy for uaconsole.
"""

from typing import Any, Optional

class UaConsoleError(Exception):
    """Base exception for all console errors."""
    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message

class ConnectionError(UaConsoleError):
    """Raised when the OPC UA session cannot be established."""
    pass

class ConfigurationError(UaConsoleError):
    """Raised when console configuration or input is invalid."""
    pass

class SecurityError(UaConsoleError):
    """Raised when security operations fail."""
    pass

class ServiceError(UaConsoleError):
    """Raised when a single OPC UA service call fails."""
    def __init__(self, status_code: int, message: Optional[str] = None, context: Optional[dict[str, Any]] = None):
        super().__init__(message or f"Service call failed with status 0x{status_code:08X}", context)
        self.status_code = status_code

class AttributeReadError(ServiceError):
    """Raised when the node class or browse name of a node cannot be read."""
    pass

class ValueReadError(ServiceError):
    """Raised when the value attribute of a variable cannot be read."""
    pass
