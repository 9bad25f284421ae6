#!/usr/bin/env python3
"""
Command-line interface for the Proxmox compute resource.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

import click
import yaml

from pve_compute.compute_resource import ProxmoxComputeResource, host_compute_attrs
from pve_compute.config import config_loader
from pve_compute.exceptions import ComputeResourceError, ConfigurationError
from pve_compute.logging import set_level
from pve_compute.models import Host


def setup_logging(
    verbose: bool = False, quiet: bool = False, log_level: str = "INFO"
) -> None:
    """Setup logging configuration."""
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    set_level(level)


def emit(ctx: Any, data: Any) -> None:
    """Print data in the selected output format."""
    output_format = ctx.obj.get("output_format", "text")
    if output_format == "json":
        click.echo(json.dumps(data, indent=2, default=str))
    elif output_format == "yaml":
        click.echo(yaml.safe_dump(data, default_flow_style=False))
    elif isinstance(data, dict):
        for key, value in data.items():
            click.echo(f"{key}: {value}")
    else:
        click.echo(data)


def _load_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise click.BadParameter(f"{path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path} must contain a mapping")
    return data


def _compute_resource(ctx: Any) -> ProxmoxComputeResource:
    if ctx.obj.get("compute_resource") is None:
        ctx.obj["compute_resource"] = ProxmoxComputeResource.from_config(
            ctx.obj["app_config"]
        )
    return ctx.obj["compute_resource"]


def _fail(error: Exception) -> None:
    click.echo(f"✗ Error: {error}", err=True)
    sys.exit(1)


@click.group()
@click.option("--config", "-c", default=None, help="Configuration file path")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")
@click.option(
    "--output",
    "-o",
    type=click.Choice(["text", "json", "yaml"]),
    default="text",
    help="Output format",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default=None,
    help="Log level",
)
@click.version_option(package_name="pve-compute")
@click.pass_context
def cli(
    ctx: Any,
    config: Optional[str],
    verbose: bool,
    quiet: bool,
    output: str,
    log_level: Optional[str],
) -> None:
    """Manage Proxmox VE guests as compute resources."""
    try:
        app_config = config_loader.load_config(config)
    except ConfigurationError as e:
        _fail(e)

    setup_logging(verbose, quiet, log_level or app_config.log_level)

    ctx.ensure_object(dict)
    ctx.obj["app_config"] = app_config
    ctx.obj["output_format"] = output
    ctx.obj["quiet"] = quiet
    ctx.obj.setdefault("compute_resource", None)


@cli.command("list")
@click.option("--node", "-n", default=None, help="Only list guests on this node")
@click.pass_context
def list_vms(ctx: Any, node: Optional[str]) -> None:
    """List guests."""
    try:
        vms = _compute_resource(ctx).list_vms(node)
    except ComputeResourceError as e:
        _fail(e)

    if ctx.obj["output_format"] == "text":
        if not vms:
            click.echo("No guests found")
            return
        click.echo(f"{'UUID':<14} {'Node':<10} {'Status':<10} {'Name':<20}")
        click.echo("-" * 56)
        for vm in vms:
            click.echo(f"{vm.uuid:<14} {vm.node:<10} {vm.status:<10} {vm.vm_name:<20}")
        return

    emit(
        ctx,
        [
            {
                "uuid": vm.uuid,
                "node": vm.node,
                "status": vm.status,
                "name": vm.vm_name,
                "templated": vm.templated,
            }
            for vm in vms
        ],
    )


@cli.command()
@click.argument("uuid")
@click.pass_context
def show(ctx: Any, uuid: str) -> None:
    """Show the config of a guest."""
    try:
        vm = _compute_resource(ctx).find_vm_by_uuid(uuid)
        emit(ctx, vm.config())
    except ComputeResourceError as e:
        _fail(e)


@cli.command()
@click.argument("uuid")
@click.pass_context
def destroy(ctx: Any, uuid: str) -> None:
    """Stop and destroy a guest. Absent guests are not an error."""
    try:
        _compute_resource(ctx).destroy_vm(uuid)
    except ComputeResourceError as e:
        _fail(e)

    if not ctx.obj["quiet"]:
        click.echo(f"✓ {uuid} destroyed")


@cli.command()
@click.argument("uuid")
@click.argument("attrs_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def save(ctx: Any, uuid: str, attrs_file: str) -> None:
    """Apply compute attributes from a YAML file to a guest."""
    attrs = _load_yaml(attrs_file)
    try:
        _compute_resource(ctx).save_vm(uuid, attrs)
    except ComputeResourceError as e:
        _fail(e)

    if not ctx.obj["quiet"]:
        click.echo(f"✓ {uuid} saved")


@cli.command("check-host")
@click.argument("host_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def check_host(ctx: Any, host_file: str) -> None:
    """Validate a host description and print its compute attributes."""
    data = _load_yaml(host_file)
    try:
        attrs = host_compute_attrs(Host.from_dict(data))
    except ComputeResourceError as e:
        _fail(e)

    emit(ctx, attrs)


@cli.group()
def config() -> None:
    """Manage configuration settings."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: Any) -> None:
    """Display current configuration (password hidden)."""
    data = ctx.obj["app_config"].model_dump()
    if data.get("password"):
        data["password"] = "********"
    click.echo(yaml.safe_dump(data, default_flow_style=False))


if __name__ == "__main__":
    cli()
