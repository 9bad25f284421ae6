"""
Network interface attribute mapping.

Proxmox addresses guest NICs by slot name (net0, net1, ...). This module
checks host interface identifiers against that scheme and turns them into
per-slot attribute mappings.
"""

import re
from typing import Any, Dict, Sequence

from .exceptions import ValidationError
from .models import NetworkInterface


class InterfaceAttributeMapper:
    """Maps host interfaces to Proxmox slot-indexed attributes."""

    IDENTIFIER_PATTERN = re.compile(r"^net[0-9]+$")

    @staticmethod
    def validate_identifier(identifier: str, index: int) -> str:
        """
        Validate a NIC identifier.

        Args:
            identifier: Interface identifier, e.g. "net0"
            index: Position of the interface on the host

        Returns:
            str: Validated identifier

        Raises:
            ValidationError: If the identifier is empty or not net[n]
        """
        if not identifier:
            raise ValidationError(
                f"Identifier interface[{index}] required.", "interface"
            )

        if not InterfaceAttributeMapper.IDENTIFIER_PATTERN.match(identifier):
            raise ValidationError(
                f"Invalid identifier interface[{index}]. "
                "Must be net[n] with n integer >= 0",
                "interface",
            )

        return identifier

    def map(self, interfaces: Sequence[NetworkInterface]) -> Dict[str, Dict[str, Any]]:
        """
        Build the interface attributes keyed by identifier.

        The host's MAC address is carried as ``macaddr`` unless the NIC's
        own attributes already name one, so that saving a host never
        changes the MAC of its guest NIC.

        Args:
            interfaces: Host interfaces in host order

        Returns:
            Mapping of identifier to its id/ip/ip6/macaddr and NIC attributes

        Raises:
            ValidationError: On a missing, malformed or repeated identifier
        """
        nic_attrs: Dict[str, Dict[str, Any]] = {}
        for index, nic in enumerate(interfaces):
            identifier = self.validate_identifier(nic.identifier or "", index)
            if identifier in nic_attrs:
                raise ValidationError(
                    f"Duplicate identifier interface[{index}]. "
                    f"{identifier} is already used",
                    "interface",
                )
            attrs = dict(nic.compute_attributes or {})
            if nic.mac and not attrs.get("macaddr"):
                attrs["macaddr"] = nic.mac
            attrs.update({"id": identifier, "ip": nic.ip, "ip6": nic.ip6})
            nic_attrs[identifier] = attrs
        return nic_attrs
