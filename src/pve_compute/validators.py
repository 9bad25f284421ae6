"""
Compute attribute validation.

Checks that a host's requested guest settings agree with its operating
system and fills in defaults the cluster would otherwise reject.
"""

from typing import Any, Dict, FrozenSet, Optional

from .exceptions import ValidationError
from .logging import get_logger
from .models import Host, VmType

logger = get_logger(__name__)


LINUX_FAMILIES = frozenset(
    {
        "Debian",
        "Redhat",
        "Suse",
        "Altlinux",
        "Archlinux",
        "Coreos",
        "Gentoo",
        "Rancheros",
        "NixOS",
    }
)

# None means compatible with every family
OSTYPE_FAMILIES: Dict[str, Optional[FrozenSet[str]]] = {
    "l24": LINUX_FAMILIES,
    "l26": LINUX_FAMILIES,
    "solaris": frozenset({"Solaris"}),
    "wxp": frozenset({"Windows"}),
    "w2k": frozenset({"Windows"}),
    "w2k3": frozenset({"Windows"}),
    "w2k8": frozenset({"Windows"}),
    "wvista": frozenset({"Windows"}),
    "win7": frozenset({"Windows"}),
    "win8": frozenset({"Windows"}),
    "win10": frozenset({"Windows"}),
    "win11": frozenset({"Windows"}),
    "other": None,
}


class ComputeAttributesValidator:
    """Validates and completes compute attributes of a host."""

    @staticmethod
    def ostype_consistent(ostype: str, family: str) -> bool:
        if ostype not in OSTYPE_FAMILIES:
            return False
        families = OSTYPE_FAMILIES[ostype]
        return families is None or family in families

    def validate(self, family: Optional[str], compute_attributes: Dict[str, Any]) -> None:
        """
        Check the qemu ostype against the operating system family.

        Raises:
            ValidationError: If the family is not compatible with the ostype
        """
        if compute_attributes.get("type") != VmType.QEMU.value:
            return
        config = compute_attributes.get("config_attributes") or {}
        if "ostype" not in config or family is None:
            return

        ostype = config["ostype"]
        if not self.ostype_consistent(ostype, family):
            raise ValidationError(
                f"Operating system family {family} is not consistent with {ostype}",
                "compute_attributes",
            )

    def apply(self, host: Host) -> Dict[str, Any]:
        """
        Validate the host's compute attributes and fill in defaults.

        Containers without a hostname get the host name. The host's
        compute_attributes mapping is updated in place and returned.
        """
        attrs = host.compute_attributes
        family = host.operatingsystem.family if host.operatingsystem else None
        self.validate(family, attrs)

        if attrs.get("type") == VmType.LXC.value:
            config = attrs.setdefault("config_attributes", {})
            if not config.get("hostname"):
                logger.debug(
                    f"Defaulting container hostname to {host.name}",
                    hostname=host.name,
                )
                config["hostname"] = host.name

        return attrs
