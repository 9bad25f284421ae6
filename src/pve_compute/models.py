"""
Data models for Proxmox compute-resource operations.

This module defines the host-side records the adapter reads and the
identifiers it uses for guests on the cluster.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum

from .exceptions import InvalidUuidError, ValidationError


class VmType(Enum):
    """Guest types."""

    QEMU = "qemu"
    LXC = "lxc"


# Attributes that identify a guest rather than configure it
IDENTITY_KEYS = frozenset({"vmid", "node", "type", "templated", "image_id"})

UUID_PATTERN = re.compile(r"^(qemu|lxc)_([0-9]+)$")


@dataclass(frozen=True)
class VmUuid:
    """Guest identifier in the form <type>_<vmid>, e.g. qemu_100."""

    type: VmType
    vmid: int

    @classmethod
    def parse(cls, uuid: str) -> "VmUuid":
        match = UUID_PATTERN.match(str(uuid or ""))
        if not match:
            raise InvalidUuidError(uuid)
        return cls(type=VmType(match.group(1)), vmid=int(match.group(2)))

    def __str__(self) -> str:
        return f"{self.type.value}_{self.vmid}"


@dataclass
class OperatingSystem:
    """Host operating system."""

    name: str
    family: str


@dataclass
class NetworkInterface:
    """Host network interface."""

    identifier: Optional[str] = None
    ip: Optional[str] = None
    ip6: Optional[str] = None
    mac: Optional[str] = None
    primary: bool = False
    compute_attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Host:
    """Host record as handed over by the management console."""

    name: str
    interfaces: List[NetworkInterface] = field(default_factory=list)
    operatingsystem: Optional[OperatingSystem] = None
    compute_attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Host":
        """
        Build a host from its mapping form (as read from YAML or JSON).

        Raises:
            ValidationError: If name is missing or an entry has unknown keys
        """
        if not data.get("name"):
            raise ValidationError("Host name required.", "host")
        os_data = data.get("operatingsystem")
        try:
            return cls(
                name=data["name"],
                interfaces=[
                    NetworkInterface(**nic) for nic in data.get("interfaces") or []
                ],
                operatingsystem=OperatingSystem(**os_data) if os_data else None,
                compute_attributes=dict(data.get("compute_attributes") or {}),
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid host {data['name']}: {e}", "host") from e

    @property
    def macs(self) -> List[str]:
        return [nic.mac.lower() for nic in self.interfaces if nic.mac]


@dataclass
class VMSummary:
    """Guest summary as listed on a node."""

    uuid: str
    vmid: int
    type: VmType
    node: str
    vm_name: str
    status: str
    templated: bool = False
