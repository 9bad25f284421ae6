"""Unit tests for the Proxmox compute resource."""

from unittest.mock import Mock, patch

import pytest
from proxmoxer.core import ResourceException

from pve_compute.compute_resource import ProxmoxComputeResource
from pve_compute.config import AppConfig
from pve_compute.exceptions import (
    ConfigurationError,
    InvalidUuidError,
    ProxmoxAPIError,
    VMNotFoundError,
)
from pve_compute.models import Host, NetworkInterface, VmType, VmUuid, VMSummary


class TestFindVmByUuid:
    """Test uuid lookups and their error translation."""

    @pytest.mark.unit
    def test_uuid_without_type_raises_invalid_uuid(self, session):
        """Test a uuid that does not match <type>_<vmid> is not a not-found."""
        cr = ProxmoxComputeResource(session)
        with pytest.raises(InvalidUuidError):
            cr.find_vm_by_uuid("100")
        session.find_by_uuid.assert_not_called()

    @pytest.mark.unit
    def test_remote_error_raises_not_found(self, session):
        session.find_by_uuid.side_effect = ResourceException(
            500, "Internal Server Error", "VM not found"
        )
        cr = ProxmoxComputeResource(session)
        with pytest.raises(VMNotFoundError) as excinfo:
            cr.find_vm_by_uuid("qemu_100")
        assert excinfo.value.uuid == "qemu_100"

    @pytest.mark.unit
    def test_unknown_guest_raises_not_found(self, session):
        cr = ProxmoxComputeResource(session)
        with pytest.raises(VMNotFoundError):
            cr.find_vm_by_uuid("lxc_200")
        session.find_by_uuid.assert_called_once_with(VmUuid(VmType.LXC, 200))

    @pytest.mark.unit
    def test_returns_guest(self, session, remote_vm):
        vm = remote_vm("qemu_100")
        session.find_by_uuid.return_value = vm
        assert ProxmoxComputeResource(session).find_vm_by_uuid("qemu_100") is vm

    @pytest.mark.unit
    def test_invalid_uuid_and_not_found_are_distinct(self):
        assert not issubclass(InvalidUuidError, VMNotFoundError)
        assert not issubclass(VMNotFoundError, InvalidUuidError)


class TestDestroyVm:
    """Test guest destruction."""

    @pytest.mark.unit
    def test_handles_situation_when_vm_is_not_present(self, session):
        cr = ProxmoxComputeResource(session)
        with patch.object(cr, "find_vm_by_uuid", side_effect=VMNotFoundError("abc")):
            assert cr.destroy_vm("abc")

    @pytest.mark.unit
    def test_absent_guest_on_cluster(self, session):
        assert ProxmoxComputeResource(session).destroy_vm("qemu_404") is True

    @pytest.mark.unit
    def test_stops_running_guest_before_destroy(self, session, remote_vm):
        vm = remote_vm("qemu_100", running=True)
        calls = Mock()
        vm.stop.side_effect = lambda: calls("stop")
        vm.destroy.side_effect = lambda: calls("destroy")
        session.find_by_uuid.return_value = vm

        assert ProxmoxComputeResource(session).destroy_vm("qemu_100")
        assert [c.args[0] for c in calls.call_args_list] == ["stop", "destroy"]

    @pytest.mark.unit
    def test_stopped_guest_is_destroyed_directly(self, session, remote_vm):
        vm = remote_vm("lxc_101", container=True)
        session.find_by_uuid.return_value = vm

        ProxmoxComputeResource(session).destroy_vm("lxc_101")
        vm.stop.assert_not_called()
        vm.destroy.assert_called_once_with()

    @pytest.mark.unit
    def test_api_error_during_destroy_propagates(self, session, remote_vm):
        vm = remote_vm("qemu_100")
        vm.destroy.side_effect = ProxmoxAPIError("locked", "destroy")
        session.find_by_uuid.return_value = vm
        with pytest.raises(ProxmoxAPIError):
            ProxmoxComputeResource(session).destroy_vm("qemu_100")

    @pytest.mark.unit
    def test_invalid_uuid_propagates(self, session):
        with pytest.raises(InvalidUuidError):
            ProxmoxComputeResource(session).destroy_vm("abc")


class TestSaveVm:
    """Test saving requested attributes to a guest."""

    @pytest.mark.unit
    def test_saves_modified_server_config(self, session, remote_vm):
        vm = remote_vm("qemu_100", config={"cores": ""})
        session.find_by_uuid.return_value = vm
        attr = {
            "vmid": "100",
            "type": "qemu",
            "node": "pve",
            "templated": "0",
            "config_attributes": {"cores": "1", "cpulimit": "1"},
        }

        ProxmoxComputeResource(session).save_vm("qemu_100", attr)

        vm.update.assert_called_once_with({"cores": "1", "cpulimit": "1"})

    @pytest.mark.unit
    def test_saves_modified_container_config(self, session, remote_vm):
        vm = remote_vm("lxc_100", config={"cores": ""}, container=True)
        session.find_by_uuid.return_value = vm
        attr = {
            "vmid": "100",
            "type": "lxc",
            "node": "pve",
            "templated": "0",
            "config_attributes": {"cores": "1", "cpulimit": "1"},
        }

        ProxmoxComputeResource(session).save_vm("lxc_100", attr)

        vm.update.assert_called_once_with({"cores": "1", "cpulimit": "1"})

    @pytest.mark.unit
    def test_guest_type_selects_parser(self, session, remote_vm):
        """Test the guest's own type wins over the requested type."""
        vm = remote_vm("lxc_100", config={}, container=True)
        session.find_by_uuid.return_value = vm
        attr = {"type": "qemu", "config_attributes": {"hostname": "ct01", "sockets": "2"}}

        ProxmoxComputeResource(session).save_vm("lxc_100", attr)

        vm.update.assert_called_once_with({"hostname": "ct01"})

    @pytest.mark.unit
    def test_no_changes_skips_update(self, session, remote_vm):
        vm = remote_vm("qemu_100", config={"cores": "1"})
        session.find_by_uuid.return_value = vm

        ProxmoxComputeResource(session).save_vm(
            "qemu_100", {"config_attributes": {"cores": "1"}}
        )

        vm.update.assert_not_called()

    @pytest.mark.unit
    def test_templated_converts_to_template(self, session, remote_vm):
        vm = remote_vm("qemu_100", config={"cores": ""})
        session.find_by_uuid.return_value = vm

        ProxmoxComputeResource(session).save_vm(
            "qemu_100", {"templated": "1", "config_attributes": {"cores": "1"}}
        )

        vm.create_template.assert_called_once_with()
        vm.update.assert_not_called()

    @pytest.mark.unit
    def test_template_is_updated_not_reconverted(self, session, remote_vm):
        vm = remote_vm("qemu_100", config={"cores": ""}, templated=True)
        session.find_by_uuid.return_value = vm

        ProxmoxComputeResource(session).save_vm(
            "qemu_100", {"templated": "1", "config_attributes": {"cores": "1"}}
        )

        vm.create_template.assert_not_called()
        vm.update.assert_called_once_with({"cores": "1"})

    @pytest.mark.unit
    def test_missing_guest_raises_not_found(self, session):
        with pytest.raises(VMNotFoundError):
            ProxmoxComputeResource(session).save_vm("qemu_100", {})


class TestAssociatedHost:
    """Test matching guests to hosts by MAC."""

    @pytest.mark.unit
    def test_associated_host_matches_any_nic(self, session, remote_vm):
        mac = "ca:d0:e6:32:16:97"
        host = Host(
            name="web01",
            interfaces=[
                NetworkInterface(identifier="net0", mac="00:11:22:33:44:55"),
                NetworkInterface(identifier="net1", mac=mac.upper()),
            ],
        )
        other = Host(name="db01", interfaces=[NetworkInterface(identifier="net0", mac="aa:bb:cc:dd:ee:ff")])
        vm = remote_vm("qemu_100", macs=[mac])

        assert ProxmoxComputeResource(session).associated_host(vm, [other, host]) is host

    @pytest.mark.unit
    def test_no_match(self, session, remote_vm):
        vm = remote_vm("qemu_100", macs=["ca:d0:e6:32:16:97"])
        host = Host(name="web01", interfaces=[NetworkInterface(identifier="net0")])
        assert ProxmoxComputeResource(session).associated_host(vm, [host]) is None


class TestListVms:
    @pytest.mark.unit
    def test_defaults_to_configured_node(self, session):
        config = AppConfig(url="https://pve.example.com:8006", user="root@pam", password="secret", default_node="pve2")
        summary = VMSummary("qemu_100", 100, VmType.QEMU, "pve2", "web01", "running")
        session.list_vms.return_value = [summary]

        cr = ProxmoxComputeResource(session, config.connection_settings())

        assert cr.list_vms() == [summary]
        session.list_vms.assert_called_once_with("pve2")

    @pytest.mark.unit
    def test_explicit_node(self, session):
        ProxmoxComputeResource(session).list_vms("pve3")
        session.list_vms.assert_called_once_with("pve3")


class TestFromConfig:
    @pytest.mark.unit
    def test_connects_with_settings(self):
        config = AppConfig(url="https://pve.example.com:8006/api2/json", user="root@pam", password="secret", timeout=10)
        with patch("pve_compute.compute_resource.ProxmoxSession.connect") as connect:
            cr = ProxmoxComputeResource.from_config(config)

        connect.assert_called_once_with(
            "https://pve.example.com:8006/api2/json",
            "root@pam",
            "secret",
            verify_ssl=True,
            timeout=10,
        )
        assert cr.session is connect.return_value
        assert cr.settings.node == "pve"

    @pytest.mark.unit
    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError):
            ProxmoxComputeResource.from_config(AppConfig())
