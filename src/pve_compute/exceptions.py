"""
Custom exceptions for Proxmox compute-resource operations.

This module defines all custom exceptions raised by the adapter layer.
"""


class ComputeResourceError(Exception):
    """Base exception for compute-resource operations."""

    def __init__(self, message: str, error_code: int = 2000) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message


class ConfigurationError(ComputeResourceError):
    """Configuration-related errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code=2001)


class ConnectionError(ComputeResourceError):
    """Connection-related errors."""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(f"Connection error to {url}: {message}", error_code=2002)
        self.url = url


class ValidationError(ComputeResourceError):
    """Validation errors.

    The message always ends with the caller supplied sentence so that
    callers can match on its suffix.
    """

    def __init__(self, message: str, validation_type: str = "general") -> None:
        super().__init__(
            f"Validation error ({validation_type}): {message}", error_code=2003
        )
        self.validation_type = validation_type


class VMNotFoundError(ComputeResourceError):
    """VM or container not found on the cluster."""

    def __init__(self, uuid: str, reason: str = "") -> None:
        message = f"VM '{uuid}' not found"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, error_code=2004)
        self.uuid = uuid


class InvalidUuidError(ComputeResourceError):
    """Malformed VM uuid (expected <type>_<vmid>)."""

    def __init__(self, uuid: str) -> None:
        super().__init__(
            f"Invalid VM uuid '{uuid}'. Must be qemu_<vmid> or lxc_<vmid>",
            error_code=2005,
        )
        self.uuid = uuid


class ProxmoxAPIError(ComputeResourceError):
    """Proxmox API errors."""

    def __init__(self, message: str, operation: str = "unknown") -> None:
        super().__init__(
            f"Proxmox API error during {operation}: {message}", error_code=2006
        )
        self.operation = operation
