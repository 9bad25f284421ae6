"""
Config attribute diffing.

Computes the attributes to send when updating an existing guest, so that
an update never overwrites settings the request did not change.
"""

from enum import Enum
from typing import Any, Callable, Dict, Hashable, Mapping, Optional

from .models import IDENTITY_KEYS, VmType
from .parsers import (
    NIC_ID,
    keep_mac,
    known_attribute,
    parse_container_vm,
    parse_server_vm,
    present,
)

Parser = Callable[[Dict[str, Any]], Dict[str, Any]]


def key_name(key: Hashable) -> str:
    if isinstance(key, Enum):
        return str(key.value)
    return str(key)


class ConfigAttributeDiffer:
    """Diffs requested compute attributes against a guest config."""

    def __init__(
        self,
        server_parser: Optional[Parser] = None,
        container_parser: Optional[Parser] = None,
    ) -> None:
        self.parsers: Dict[VmType, Parser] = {
            VmType.QEMU: server_parser or parse_server_vm,
            VmType.LXC: container_parser or parse_container_vm,
        }

    def diff(
        self,
        existing: Mapping[Hashable, Any],
        requested_type: VmType,
        requested_attributes: Dict[str, Any],
    ) -> Dict[Hashable, Any]:
        """
        Compute the changed attributes.

        Args:
            existing: Current guest config
            requested_type: Guest type, selects the parser
            requested_attributes: Requested compute attributes

        Returns:
            Changed attributes keyed like ``existing``; attributes that are
            unknown, empty or unchanged are left out
        """
        requested_type = VmType(requested_type)
        parsed = self.parsers[requested_type](requested_attributes)
        current = {key_name(key): key for key in existing}

        changes: Dict[Hashable, Any] = {}
        for name, value in parsed.items():
            if name in IDENTITY_KEYS or not present(value):
                continue
            if name in current:
                key = current[name]
                if NIC_ID.match(name):
                    value = keep_mac(str(value), existing[key])
                if str(existing[key]) == str(value):
                    continue
                changes[key] = value
            elif known_attribute(requested_type.value, name):
                changes[name] = value
        return changes
