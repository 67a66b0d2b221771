"""CLI commands for logship.

This module provides Click-based commands for checking configuration,
sending a test record through the pipeline and computing certificate pins.

Example:
    $ logship check-config -c logship.yaml
    $ logship emit "Received a request for weather forecast" -p Route=/weatherforecast
    $ logship fingerprint collector.pem

Environment Variables:
    LOGSHIP_CONFIG: Default configuration file path
    LOGSHIP_*: Pipeline settings, see PipelineConfig.from_env()
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import click
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from opentelemetry.sdk.trace import TracerProvider
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from logship.config import PipelineConfig
from logship.exceptions import ConfigurationError
from logship.models import TrustPolicy
from logship.pipeline import LoggerPipeline

console = Console()

logger = logging.getLogger(__name__)


def _load_config(config_path: Optional[Path]) -> PipelineConfig:
    if config_path:
        return PipelineConfig.from_yaml(config_path)
    return PipelineConfig.from_env()


def _parse_property_options(values: Tuple[str, ...]) -> Dict[str, str]:
    properties = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected key=value, got {item!r}", param_hint="--property")
        properties[key] = value
    return properties


def format_fingerprint(hex_digest: str) -> str:
    """Format a hex digest as colon-separated uppercase pairs."""
    upper = hex_digest.upper()
    return ":".join(upper[i:i + 2] for i in range(0, len(upper), 2))


# =============================================================================
# CLI Group
# =============================================================================


@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose logging",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug logging",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool) -> None:
    """logship - log enrichment and shipping pipeline.

    Available Commands:
        check-config  - Validate configuration and show the resulting sinks
        emit          - Send one record through the configured pipeline
        fingerprint   - Print a certificate's SHA-256 pin

    Configuration is read from a YAML file (-c) or from LOGSHIP_*
    environment variables.
    """
    if debug:
        log_level = logging.DEBUG
    elif verbose:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug


# =============================================================================
# Check Config Command
# =============================================================================


@cli.command("check-config")
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="LOGSHIP_CONFIG",
    help="Path to YAML configuration file",
)
def check_config(config_path: Optional[Path]) -> None:
    """Validate configuration and print a summary."""
    try:
        config = _load_config(config_path)
        config.validate()
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        sys.exit(1)

    table = Table(title="logship configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Minimum level", config.level.value)
    table.add_row("Shutdown grace", f"{config.shutdown_grace}s")
    for key, value in config.static_properties.items():
        table.add_row(f"Property {key}", str(value))

    table.add_row(
        "Console",
        f"{config.console.format} -> {config.console.stream}" if config.console.enabled else "disabled",
    )
    if config.collector.enabled:
        table.add_row("Collector", config.collector.endpoint)
        table.add_row("Source type", config.collector.source_type)
        table.add_row("Trust policy", config.collector.policy.value)
        table.add_row("Payload format", config.collector.payload_format)
    else:
        table.add_row("Collector", "disabled")

    console.print(table)
    if config.collector.enabled and config.collector.policy is TrustPolicy.TRUST_ALL:
        console.print(
            "[yellow]Warning:[/yellow] TrustAll disables certificate validation. "
            "Use it for local development only."
        )
    console.print("[green]Configuration is valid[/green]")


# =============================================================================
# Emit Command
# =============================================================================


@cli.command()
@click.argument("message")
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="LOGSHIP_CONFIG",
    help="Path to YAML configuration file",
)
@click.option(
    "--level", "-l",
    default="Information",
    type=click.Choice(
        ["Debug", "Information", "Warning", "Error", "Fatal"], case_sensitive=False
    ),
    help="Record level (default: Information)",
)
@click.option(
    "--property", "-p", "properties",
    multiple=True,
    help="Property as key=value (repeatable)",
)
@click.option(
    "--with-span",
    is_flag=True,
    help="Emit inside a new trace span so the record carries trace ids",
)
def emit(
    message: str,
    config_path: Optional[Path],
    level: str,
    properties: Tuple[str, ...],
    with_span: bool,
) -> None:
    """Send MESSAGE through the configured pipeline and wait for delivery."""
    props = _parse_property_options(properties)

    try:
        config = _load_config(config_path)
        pipeline = LoggerPipeline.from_config(config)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        sys.exit(1)

    with pipeline:
        if with_span:
            tracer = TracerProvider().get_tracer("logship.cli")
            with tracer.start_as_current_span("logship.emit"):
                record = pipeline.log(level, message, **props)
        else:
            record = pipeline.log(level, message, **props)

    if record is None:
        console.print(
            f"[yellow]Record not emitted (below minimum level {config.level.value})[/yellow]"
        )
        return

    console.print(f"[green]Emitted[/green] {record.level.value}: {escape(record.render())}")
    if record.trace_id:
        console.print(f"[cyan]Trace:[/cyan] {record.trace_id} [cyan]Span:[/cyan] {record.span_id}")


# =============================================================================
# Fingerprint Command
# =============================================================================


@cli.command()
@click.argument(
    "cert_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def fingerprint(cert_file: Path) -> None:
    """Print the SHA-256 fingerprint of a PEM or DER certificate.

    The output can be used as collector.pinned_fingerprint.
    """
    data = cert_file.read_bytes()
    try:
        if b"-----BEGIN CERTIFICATE-----" in data:
            cert = x509.load_pem_x509_certificate(data)
        else:
            cert = x509.load_der_x509_certificate(data)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] Cannot parse certificate: {escape(str(e))}")
        sys.exit(1)

    digest = cert.fingerprint(hashes.SHA256()).hex()
    console.print(f"[cyan]Subject:[/cyan] {cert.subject.rfc4514_string()}")
    console.print(f"[cyan]SHA-256:[/cyan] {format_fingerprint(digest)}")
