"""
Compute attribute parsers.

Flattens the nested compute attributes of a host (config, volumes and
interfaces) into the flat key space of a Proxmox guest config, e.g.
``{"cores": "2", "scsi0": "local-lvm:32,cache=none", "net0": "virtio,bridge=vmbr0"}``.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

from .logging import get_logger

logger = get_logger(__name__)


QEMU_CONFIG_KEYS = frozenset(
    {
        "name", "description", "tags", "pool", "ostype", "cores", "sockets",
        "vcpus", "cpulimit", "cpuunits", "cpu", "numa", "memory", "balloon",
        "shares", "kvm", "onboot", "boot", "bootdisk", "agent", "vga",
        "keyboard", "tablet", "hotplug", "bios", "machine", "scsihw",
        "localtime", "startdate", "protection", "ciuser", "cipassword",
        "citype", "nameserver", "searchdomain", "sshkeys",
    }
)
QEMU_DEVICE_KEYS = re.compile(
    r"^(net|ide|sata|scsi|virtio|ipconfig|unused)[0-9]+$|^efidisk0$|^tpmstate0$"
)
QEMU_DISK_KEYS = re.compile(r"^(ide|sata|scsi|virtio)[0-9]+$|^efidisk0$|^tpmstate0$")

LXC_CONFIG_KEYS = frozenset(
    {
        "hostname", "description", "tags", "pool", "ostype", "arch", "cores",
        "cpulimit", "cpuunits", "memory", "swap", "onboot", "startup",
        "protection", "nameserver", "searchdomain", "unprivileged", "console",
        "tty", "cmode", "features", "password", "ssh-public-keys",
        "ostemplate",
    }
)
LXC_DEVICE_KEYS = re.compile(r"^(net|mp|unused)[0-9]+$|^rootfs$")
NIC_ID = re.compile(r"^net([0-9]+)$")
MAC_PATTERN = re.compile(r"([0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5})")

# Form field name -> qemu cpu flag
CPU_FLAGS = {
    "spectre": "spec-ctrl",
    "pcid": "pcid",
    "ssbd": "ssbd",
    "ibpb": "ibpb",
    "virt_ssbd": "virt-ssbd",
    "amd_ssbd": "amd-ssbd",
    "amd_no_ssb": "amd-no-ssb",
    "md_clear": "md-clear",
    "pdpe1gb": "pdpe1gb",
    "hv_tlbflush": "hv-tlbflush",
    "hv_evmcs": "hv-evmcs",
    "aes": "aes",
}

QEMU_DISK_OPTIONS = ("cache", "backup", "discard", "iothread", "ssd", "replicate")
QEMU_NIC_OPTIONS = ("bridge", "firewall", "link_down", "queues", "rate", "tag")
LXC_NIC_OPTIONS = ("bridge", "firewall", "gw", "gw6", "mtu", "rate", "tag", "type")

# ip/ip6 values that are not addresses
ADDRESS_MODES = frozenset({"dhcp", "auto", "manual"})


def present(value: Any) -> bool:
    """True unless value is None or blank."""
    return value is not None and str(value).strip() != ""


def _items(collection: Any) -> List[Dict[str, Any]]:
    """Nested attributes come either as a list or as an index-keyed dict."""
    if not collection:
        return []
    if isinstance(collection, dict):
        values: Iterable[Any] = collection.values()
    else:
        values = collection
    return [item for item in values if isinstance(item, dict)]


def _options(item: Dict[str, Any], keys: Iterable[str]) -> List[str]:
    return [f"{key}={item[key]}" for key in keys if present(item.get(key))]


def _known(key: str, names: frozenset, devices: Pattern[str]) -> bool:
    return key in names or bool(devices.match(key))


def parse_server_cpu(config: Dict[str, Any]) -> Optional[str]:
    """
    Build the qemu cpu option from cpu_type and flag fields.

    Flag fields are "1" (enable), "-1" (disable) or empty. The consumed
    fields are removed from config.
    """
    cpu_type = config.pop("cpu_type", None)
    flags = []
    for field_name, flag in CPU_FLAGS.items():
        value = str(config.pop(field_name, "") or "")
        if value == "1":
            flags.append(f"+{flag}")
        elif value == "-1":
            flags.append(f"-{flag}")

    if not present(cpu_type):
        return None
    cpu = f"cputype={cpu_type}"
    if flags:
        cpu += ",flags=" + ";".join(flags)
    return cpu


def parse_server_volume(volume: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """Return (disk key, disk option string) for a qemu volume."""
    key = volume.get("id") or "{}{}".format(
        volume.get("controller", ""), volume.get("device", "")
    )
    storage = volume.get("storage")
    if not QEMU_DISK_KEYS.match(key) or not present(storage):
        return None
    if present(volume.get("volid")):
        value = str(volume["volid"])
    else:
        value = f"{storage}:{volume.get('size', '')}"
    value = ",".join([value] + _options(volume, QEMU_DISK_OPTIONS))
    return key, value


def _address(nic: Dict[str, Any], key: str, prefix_key: str) -> Optional[str]:
    """
    Return nic[key] in CIDR form for an ip/ip6 option.

    Modes (dhcp, auto, manual) and addresses that already carry a prefix
    pass through. A bare address takes its prefix length from
    nic[prefix_key] and is left out when there is none.
    """
    address = nic.get(key)
    if not present(address):
        return None
    address = str(address).strip()
    if address in ADDRESS_MODES or "/" in address:
        return address
    prefix = nic.get(prefix_key)
    if not present(prefix):
        logger.warning(
            f"No {prefix_key} for {key} {address} on {nic.get('id')}, skipping",
            interface=nic.get("id"),
        )
        return None
    return f"{address}/{prefix}"


def parse_server_interface(nic: Dict[str, Any]) -> Dict[str, str]:
    """
    Return the qemu config entries for one NIC.

    The NIC itself goes to net<n>; addresses, when given, go to the
    matching cloud-init ipconfig<n>.
    """
    identifier = str(nic.get("id") or "")
    slot = NIC_ID.match(identifier)
    if not slot:
        return {}

    model = nic.get("model") or "virtio"
    macaddr = nic.get("macaddr")
    head = f"{model}={str(macaddr).upper()}" if present(macaddr) else str(model)
    entries = {identifier: ",".join([head] + _options(nic, QEMU_NIC_OPTIONS))}

    ipconfig = []
    ip = _address(nic, "ip", "cidr")
    if ip:
        ipconfig.append(f"ip={ip}")
        if present(nic.get("gw")):
            ipconfig.append(f"gw={nic['gw']}")
    ip6 = _address(nic, "ip6", "cidr6")
    if ip6:
        ipconfig.append(f"ip6={ip6}")
        if present(nic.get("gw6")):
            ipconfig.append(f"gw6={nic['gw6']}")
    if ipconfig:
        entries[f"ipconfig{slot.group(1)}"] = ",".join(ipconfig)
    return entries


def parse_container_volume(volume: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """Return (key, option string) for a container rootfs or mount point."""
    key = volume.get("id")
    storage = volume.get("storage")
    if not present(key) or not LXC_DEVICE_KEYS.match(key) or not present(storage):
        return None
    value = f"{storage}:{volume.get('size', '')}"
    if key != "rootfs":
        if not present(volume.get("mp")):
            logger.warning(f"Mount point {key} has no path, skipping", volume=key)
            return None
        value += f",mp={volume['mp']}"
    return key, value


def parse_container_interface(nic: Dict[str, Any]) -> Dict[str, str]:
    identifier = str(nic.get("id") or "")
    slot = NIC_ID.match(identifier)
    if not slot:
        return {}

    options = {key: nic[key] for key in LXC_NIC_OPTIONS if present(nic.get(key))}
    hwaddr = nic.get("hwaddr") or nic.get("macaddr")
    if present(hwaddr):
        options["hwaddr"] = str(hwaddr).upper()
    for key, prefix_key in (("ip", "cidr"), ("ip6", "cidr6")):
        address = _address(nic, key, prefix_key)
        if address:
            options[key] = address
    options.setdefault("type", "veth")

    name = nic.get("name") or f"eth{slot.group(1)}"
    return {identifier: _container_nic(name, options)}


def _container_nic(name: str, options: Dict[str, Any]) -> str:
    # name= first, remaining options sorted by key as Proxmox lists them
    return ",".join([f"name={name}"] + [f"{key}={options[key]}" for key in sorted(options)])


def keep_mac(requested: str, existing: Any) -> str:
    """
    Carry the MAC of an existing NIC into a requested NIC value without one.

    Proxmox generates a new MAC for a NIC sent without one.
    """
    if MAC_PATTERN.search(requested):
        return requested
    match = MAC_PATTERN.search(str(existing or ""))
    if not match:
        return requested
    mac = match.group(1).upper()

    head, *rest = requested.split(",")
    if head.startswith("name="):
        options = dict(part.split("=", 1) for part in rest if "=" in part)
        options["hwaddr"] = mac
        return _container_nic(head[len("name="):], options)
    return ",".join([f"{head}={mac}"] + rest)


def _parse(
    args: Dict[str, Any],
    names: frozenset,
    devices: Pattern[str],
    parse_volume: Any,
    parse_interface: Any,
    config: Dict[str, Any],
) -> Dict[str, Any]:
    parsed: Dict[str, Any] = {}
    if present(args.get("vmid")):
        parsed["vmid"] = str(args["vmid"])

    for key, value in config.items():
        if not _known(key, names, devices):
            logger.debug(f"Ignoring unknown config attribute {key}", attribute=key)
            continue
        if present(value):
            parsed[key] = value

    for volume in _items(args.get("volumes_attributes")):
        entry = parse_volume(volume)
        if entry:
            parsed[entry[0]] = entry[1]

    for nic in _items(args.get("interfaces_attributes")):
        parsed.update(parse_interface(nic))

    return parsed


def parse_server_vm(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten qemu compute attributes into a guest config mapping.

    Args:
        args: Compute attributes (vmid, config_attributes,
            volumes_attributes, interfaces_attributes)

    Returns:
        Flat string-keyed config, vmid included, empty values dropped
    """
    config = dict(args.get("config_attributes") or {})
    cpu = parse_server_cpu(config)
    if cpu:
        config["cpu"] = cpu
    return _parse(
        args,
        QEMU_CONFIG_KEYS,
        QEMU_DEVICE_KEYS,
        parse_server_volume,
        parse_server_interface,
        config,
    )


def parse_container_vm(args: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten lxc compute attributes into a container config mapping."""
    config = dict(args.get("config_attributes") or {})
    return _parse(
        args,
        LXC_CONFIG_KEYS,
        LXC_DEVICE_KEYS,
        parse_container_volume,
        parse_container_interface,
        config,
    )


def known_attribute(vm_type: str, key: str) -> bool:
    if vm_type == "lxc":
        return _known(key, LXC_CONFIG_KEYS, LXC_DEVICE_KEYS)
    return _known(key, QEMU_CONFIG_KEYS, QEMU_DEVICE_KEYS)
