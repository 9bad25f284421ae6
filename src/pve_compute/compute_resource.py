"""
Proxmox compute resource.

This module implements the adapter between host records of the management
console and guests on a Proxmox VE cluster.
"""

from typing import Any, Dict, Iterable, List, Optional

from proxmoxer.core import ResourceException

from .config import AppConfig, ConnectionSettings
from .differ import ConfigAttributeDiffer
from .exceptions import VMNotFoundError
from .interfaces import InterfaceAttributeMapper
from .logging import get_logger
from .models import Host, VmType, VmUuid, VMSummary
from .remote import ProxmoxSession, RemoteSession, RemoteVm
from .validators import ComputeAttributesValidator

logger = get_logger(__name__)


def host_interfaces_attrs(host: Host) -> Dict[str, Dict[str, Any]]:
    return InterfaceAttributeMapper().map(host.interfaces)


def host_compute_attrs(host: Host) -> Dict[str, Any]:
    """
    Validate the host's compute attributes and add its interfaces.

    Container hostnames are filled in on host.compute_attributes itself.

    Raises:
        ValidationError: On ostype/OS family mismatch or bad NIC identifiers
    """
    attrs = ComputeAttributesValidator().apply(host)
    result = dict(attrs)
    result["interfaces_attributes"] = host_interfaces_attrs(host)
    return result


class ProxmoxComputeResource:
    """
    Compute resource backed by a Proxmox VE cluster.

    Args:
        session (RemoteSession): Cluster session used for guest lookups
        settings (Optional[ConnectionSettings]): Settings the session was opened with
        differ (Optional[ConfigAttributeDiffer]): Config differ used by save_vm

    Raises:
        InvalidUuidError: From lookups, if a uuid is not <type>_<vmid>
        VMNotFoundError: From lookups, if the guest does not exist
    """

    def __init__(
        self,
        session: RemoteSession,
        settings: Optional[ConnectionSettings] = None,
        differ: Optional[ConfigAttributeDiffer] = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.differ = differ or ConfigAttributeDiffer()

    @classmethod
    def from_config(cls, app_config: AppConfig) -> "ProxmoxComputeResource":
        """Connect to the cluster described by the application config."""
        settings = app_config.connection_settings()
        session = ProxmoxSession.connect(
            settings.url,
            settings.user,
            settings.password,
            verify_ssl=settings.verify_ssl,
            timeout=app_config.timeout,
        )
        return cls(session, settings)

    def find_vm_by_uuid(self, uuid: str) -> RemoteVm:
        """
        Find a guest by uuid.

        Args:
            uuid: Guest uuid, e.g. "qemu_100"

        Returns:
            RemoteVm: The guest

        Raises:
            InvalidUuidError: If uuid is not <type>_<vmid>
            VMNotFoundError: If the cluster does not know the guest or the
                lookup fails
        """
        vm_uuid = VmUuid.parse(uuid)
        try:
            vm = self.session.find_by_uuid(vm_uuid)
        except ResourceException as e:
            logger.error(
                f"Failed retrieving proxmox vm by uuid={uuid}: {e}",
                uuid=uuid,
                exc_info=True,
            )
            raise VMNotFoundError(uuid, str(e)) from e

        if vm is None:
            raise VMNotFoundError(uuid)
        return vm

    def destroy_vm(self, uuid: str) -> bool:
        """
        Stop and destroy a guest.

        A guest that no longer exists counts as destroyed.

        Returns:
            True once the guest is gone
        """
        try:
            vm = self.find_vm_by_uuid(uuid)
        except VMNotFoundError:
            logger.info(f"VM {uuid} is already absent", uuid=uuid)
            return True

        if vm.is_running():
            logger.info(f"Stopping {uuid} before destroy", uuid=uuid)
            vm.stop()
        vm.destroy()
        return True

    def save_vm(self, uuid: str, attrs: Dict[str, Any]) -> RemoteVm:
        """
        Apply requested compute attributes to an existing guest.

        A request with templated "1" converts a regular guest into a
        template. Otherwise only the changed config attributes are sent.

        Args:
            uuid: Guest uuid
            attrs: Compute attributes (vmid, type, node, templated,
                config_attributes, volumes_attributes, interfaces_attributes)

        Returns:
            RemoteVm: The updated guest
        """
        vm = self.find_vm_by_uuid(uuid)

        if str(attrs.get("templated", "0")) == "1" and not vm.is_templated():
            vm.create_template()
            return vm

        vm_type = VmType.LXC if vm.is_container() else VmType.QEMU
        changes = self.differ.diff(vm.config(), vm_type, attrs)
        if not changes:
            logger.debug(f"No config changes for {uuid}", uuid=uuid)
            return vm

        vm.update(changes)
        return vm

    def host_interfaces_attrs(self, host: Host) -> Dict[str, Dict[str, Any]]:
        return host_interfaces_attrs(host)

    def host_compute_attrs(self, host: Host) -> Dict[str, Any]:
        return host_compute_attrs(host)

    def associated_host(self, vm: RemoteVm, hosts: Iterable[Host]) -> Optional[Host]:
        """Return the first of hosts with a NIC matching any MAC of vm."""
        vm_macs = {mac.lower() for mac in vm.macs()}
        for host in hosts:
            if any(mac in vm_macs for mac in host.macs):
                return host
        return None

    def list_vms(self, node: Optional[str] = None) -> List[VMSummary]:
        if node is None and self.settings is not None:
            node = self.settings.node
        return self.session.list_vms(node)
