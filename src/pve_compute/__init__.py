"""pve-compute - Proxmox VE guests as compute resources."""

__version__ = "0.1.0"
__description__ = "Proxmox VE compute resource adapter"

from .compute_resource import (
    ProxmoxComputeResource,
    host_compute_attrs,
    host_interfaces_attrs,
)
from .config import AppConfig, ConnectionSettings
from .differ import ConfigAttributeDiffer
from .interfaces import InterfaceAttributeMapper
from .models import Host, NetworkInterface, OperatingSystem, VmType, VmUuid
from .parsers import parse_container_vm, parse_server_vm
from .remote import ProxmoxSession, ProxmoxVm, RemoteSession, RemoteVm
from .validators import ComputeAttributesValidator
from .exceptions import (
    ComputeResourceError,
    ConfigurationError,
    ConnectionError,
    ValidationError,
    VMNotFoundError,
    InvalidUuidError,
    ProxmoxAPIError,
)

__all__ = [
    "__version__",
    "__description__",
    "ProxmoxComputeResource",
    "host_compute_attrs",
    "host_interfaces_attrs",
    "AppConfig",
    "ConnectionSettings",
    "ConfigAttributeDiffer",
    "InterfaceAttributeMapper",
    "ComputeAttributesValidator",
    "Host",
    "NetworkInterface",
    "OperatingSystem",
    "VmType",
    "VmUuid",
    "parse_server_vm",
    "parse_container_vm",
    "ProxmoxSession",
    "ProxmoxVm",
    "RemoteSession",
    "RemoteVm",
    "ComputeResourceError",
    "ConfigurationError",
    "ConnectionError",
    "ValidationError",
    "VMNotFoundError",
    "InvalidUuidError",
    "ProxmoxAPIError",
]
