"""Test configuration and fixtures for pve-compute."""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pve_compute.models import Host, NetworkInterface, OperatingSystem, VmType  # noqa: E402


def make_remote_vm(
    uuid="qemu_100",
    config=None,
    container=False,
    templated=False,
    running=False,
    macs=None,
):
    """In-memory stand-in for a RemoteVm."""
    vm = Mock()
    vm.uuid = uuid
    vm.type = VmType.LXC if container else VmType.QEMU
    vm.vmid = int(uuid.split("_")[1])
    vm.node = "pve"
    vm.config.return_value = dict(config or {})
    vm.is_container.return_value = container
    vm.is_templated.return_value = templated
    vm.is_running.return_value = running
    vm.macs.return_value = list(macs or [])
    return vm


@pytest.fixture
def remote_vm():
    return make_remote_vm


@pytest.fixture
def session():
    """Mock RemoteSession that knows no guests."""
    session = Mock()
    session.find_by_uuid.return_value = None
    session.list_vms.return_value = []
    return session


@pytest.fixture
def empty_host():
    return Host(name="host1.example.com")


@pytest.fixture
def linux_host():
    return Host(
        name="web01.example.com",
        interfaces=[
            NetworkInterface(
                identifier="net0",
                ip="192.168.1.10",
                ip6="2001:db8::10",
                mac="CA:D0:E6:32:16:97",
                primary=True,
                compute_attributes={"model": "virtio", "bridge": "vmbr0", "cidr": "24", "cidr6": "64"},
            )
        ],
        operatingsystem=OperatingSystem(name="Debian 12", family="Debian"),
        compute_attributes={
            "type": "qemu",
            "node": "pve",
            "templated": "0",
            "config_attributes": {"ostype": "l26", "cores": "2"},
        },
    )
