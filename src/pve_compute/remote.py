"""
Proxmox API access.

This module defines the narrow capabilities the adapter needs from the
cluster (``RemoteSession`` and ``RemoteVm``) and implements them on top
of proxmoxer.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import urlparse

from proxmoxer import ProxmoxAPI
from proxmoxer.core import ResourceException
from proxmoxer.tools import Tasks

from .models import VmType, VmUuid, VMSummary
from .exceptions import ConnectionError, ProxmoxAPIError
from .logging import get_logger
from .parsers import MAC_PATTERN

logger = get_logger(__name__)

NIC_KEY = re.compile(r"^net[0-9]+$")

DEFAULT_PORT = 8006
API_PATH = "/api2/json"

# Seconds to wait for a stop or template task
TASK_TIMEOUT = 300


def summary_from_resource(resource: Dict[str, Any]) -> VMSummary:
    """Build a guest summary from a /cluster/resources entry."""
    vm_type = VmType(resource.get("type", "qemu"))
    vmid = int(resource["vmid"])
    return VMSummary(
        uuid=str(VmUuid(vm_type, vmid)),
        vmid=vmid,
        type=vm_type,
        node=resource.get("node", ""),
        vm_name=resource.get("name", ""),
        status=resource.get("status", "unknown"),
        templated=bool(int(resource.get("template") or 0)),
    )


class RemoteVm(Protocol):
    """Guest operations used by the adapter."""

    uuid: str
    type: VmType
    vmid: int
    node: str

    def config(self) -> Dict[str, Any]: ...

    def is_container(self) -> bool: ...

    def is_templated(self) -> bool: ...

    def is_running(self) -> bool: ...

    def macs(self) -> List[str]: ...

    def update(self, attributes: Dict[str, Any]) -> None: ...

    def create_template(self) -> None: ...

    def stop(self) -> None: ...

    def destroy(self) -> None: ...


class RemoteSession(Protocol):
    """Cluster lookups used by the adapter."""

    def find_by_uuid(self, uuid: VmUuid) -> Optional[RemoteVm]: ...

    def list_vms(self, node: Optional[str] = None) -> List[VMSummary]: ...


class ProxmoxVm:
    """A qemu VM or lxc container on a Proxmox node."""

    def __init__(self, api: ProxmoxAPI, summary: VMSummary) -> None:
        self.api = api
        self.summary = summary
        self.uuid = summary.uuid
        self.type = summary.type
        self.vmid = summary.vmid
        self.node = summary.node
        self.log = logger.bind(uuid=summary.uuid, node=summary.node)

    @property
    def resource(self) -> Any:
        return getattr(self.api.nodes(self.node), self.type.value)(self.vmid)

    def _call(self, operation: str, func: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ResourceException as e:
            self.log.error(
                f"Proxmox API call {operation} failed for {self.uuid}: {e}",
                operation=operation,
                exc_info=True,
            )
            raise ProxmoxAPIError(str(e), operation) from e

    def _wait(self, operation: str, upid: Any) -> None:
        """Block until the task started by operation has finished."""
        if not upid:
            return
        status = Tasks.blocking_status(self.api, upid, timeout=TASK_TIMEOUT)
        if not status:
            raise ProxmoxAPIError(f"task {upid} did not finish in {TASK_TIMEOUT}s", operation)
        if status.get("exitstatus") != "OK":
            self.log.error(
                f"Task {upid} failed: {status.get('exitstatus')}",
                operation=operation,
                upid=upid,
            )
            raise ProxmoxAPIError(f"task {upid} failed: {status.get('exitstatus')}", operation)

    def config(self) -> Dict[str, Any]:
        config = self._call("config", self.resource.config.get) or {}
        config.pop("digest", None)
        return config

    def is_container(self) -> bool:
        return self.type == VmType.LXC

    def is_templated(self) -> bool:
        return self.summary.templated

    def is_running(self) -> bool:
        status = self._call("status", self.resource.status.current.get) or {}
        return status.get("status") == "running"

    def macs(self) -> List[str]:
        macs = []
        for key, value in self.config().items():
            if NIC_KEY.match(key):
                match = MAC_PATTERN.search(str(value))
                if match:
                    macs.append(match.group(1).lower())
        return macs

    def update(self, attributes: Dict[str, Any]) -> None:
        self.log.info(
            f"Updating config of {self.uuid}",
            operation="update",
            attributes=sorted(str(key) for key in attributes),
        )
        self._call("update", self.resource.config.put, **attributes)

    def create_template(self) -> None:
        self.log.info(f"Converting {self.uuid} to template", operation="create_template")
        upid = self._call("create_template", self.resource.template.post)
        self._wait("create_template", upid)
        self.summary.templated = True

    def stop(self) -> None:
        self.log.info(f"Stopping {self.uuid}", operation="stop")
        upid = self._call("stop", self.resource.status.stop.post)
        self._wait("stop", upid)

    def destroy(self) -> None:
        self.log.info(f"Destroying {self.uuid}", operation="destroy")
        self._call("destroy", self.resource.delete)


class ProxmoxSession:
    """Cluster-wide guest lookups through the Proxmox API."""

    def __init__(self, api: ProxmoxAPI) -> None:
        self.api = api

    @classmethod
    def connect(
        cls,
        url: str,
        user: str,
        password: str,
        verify_ssl: bool = True,
        timeout: int = 30,
    ) -> "ProxmoxSession":
        """
        Open an authenticated session.

        Args:
            url: Cluster API url, e.g. https://pve.example.com:8006/api2/json
            user: User in name@realm form
            password: User password
            verify_ssl: Verify the server certificate
            timeout: Request timeout in seconds

        Raises:
            ConnectionError: If the url is not https or login fails
        """
        parsed = urlparse(url)
        if parsed.scheme != "https":
            raise ConnectionError("the Proxmox API is only served over https", url)

        options: Dict[str, Any] = {}
        path = parsed.path.rstrip("/")
        if path.endswith(API_PATH):
            path = path[: -len(API_PATH)]
        if path:
            # Cluster behind a reverse proxy, e.g. https://proxy/pve/api2/json
            options["path_prefix"] = path.lstrip("/")

        try:
            api = ProxmoxAPI(
                parsed.hostname,
                port=parsed.port or DEFAULT_PORT,
                user=user,
                password=password,
                verify_ssl=verify_ssl,
                timeout=timeout,
                **options,
            )
        except Exception as e:
            logger.error(f"Proxmox login failed on {url}: {e}", url=url, exc_info=True)
            raise ConnectionError(str(e), url) from e

        logger.info(f"Connected to Proxmox on {parsed.hostname}", url=url)
        return cls(api)

    def list_vms(self, node: Optional[str] = None) -> List[VMSummary]:
        try:
            resources = self.api.cluster.resources.get(type="vm")
        except ResourceException as e:
            raise ProxmoxAPIError(str(e), "list_vms") from e

        vms = []
        for resource in resources or []:
            if node and resource.get("node") != node:
                continue
            vms.append(summary_from_resource(resource))
        return vms

    def find_by_uuid(self, uuid: VmUuid) -> Optional[ProxmoxVm]:
        """
        Look up a guest anywhere on the cluster.

        Returns None when no guest has that type and vmid. Errors from the
        API are raised as proxmoxer's ResourceException.
        """
        for resource in self.api.cluster.resources.get(type="vm") or []:
            if (
                int(resource.get("vmid", -1)) == uuid.vmid
                and resource.get("type") == uuid.type.value
            ):
                return ProxmoxVm(self.api, summary_from_resource(resource))
        return None
