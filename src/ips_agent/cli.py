"""Typer CLI entrypoint for ips_agent."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
import yaml

from .config.parser import ConfigParseResult, create_config_template, load_config
from .errors import ArchiveError, ConfigurationError
from .logging_utils import configure_logging
from .models.config import AgentConfig, LoggingConfig
from .server.app import AgentServer
from .tools.archiver import ArchiveBuilder
from .tools.locator import DirectoryLocator


app = typer.Typer(
    add_completion=False,
    help="IPS diagnostic collection agent.",
    no_args_is_help=True,
)


def _config_file_option():
    return typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    )


def _load(config_file: Optional[Path], log_level: Optional[str] = None) -> AgentConfig:
    try:
        result: ConfigParseResult = load_config(config_file)
    except ConfigurationError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc

    config = result.config
    if log_level is not None:
        try:
            logging_config = LoggingConfig(level=log_level, file=config.logging.file)
        except ValueError as exc:
            raise typer.BadParameter(f"Invalid log level: {log_level}") from exc
        config = config.model_copy(update={'logging': logging_config})

    log_file = Path(config.logging.file) if config.logging.file else None
    logger = configure_logging(config.logging.get_level(), log_file)
    for warning in result.warnings:
        logger.warning(f"Configuration: {warning}")
    return config


@app.command("serve")
def serve(
    config_file: Optional[Path] = _config_file_option(),
    host: Optional[str] = typer.Option(None, "--host", help="Override the bind interface."),
    port: Optional[int] = typer.Option(None, "--port", min=1, max=65535, help="Override the listen port."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the log level."),
) -> None:
    """Run the WebSocket server until interrupted."""

    config = _load(config_file, log_level)
    updates = {}
    if host is not None:
        updates['host'] = host
    if port is not None:
        updates['port'] = port
    if updates:
        config = config.model_copy(update={'server': config.server.model_copy(update=updates)})

    server = AgentServer(config)
    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        logging.getLogger("ips_agent").info("Interrupted, shutting down")
    except OSError as exc:
        typer.echo(f"Cannot start server on {config.server.host}:{config.server.port}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command("locate")
def locate(
    file_name: Optional[str] = typer.Argument(None, help="File to locate (default: configured target)."),
    config_file: Optional[Path] = _config_file_option(),
) -> None:
    """Locate the directory holding the target file and print it."""

    config = _load(config_file)
    locator = DirectoryLocator(config.search)
    result = locator.locate(file_name or config.search.target_file_name)
    typer.echo(str(result))
    for probe in result.get_errors():
        typer.echo(f"  probe error in {probe.directory}: {probe.error}")
    if not result.found:
        raise typer.Exit(code=1)


@app.command("build")
def build(
    directory: Path = typer.Argument(..., help="Installation directory to archive."),
    device: Optional[str] = typer.Option(None, "--device", help="Device identifier filter."),
    config_file: Optional[Path] = _config_file_option(),
) -> None:
    """Build one archive and list its entries."""

    config = _load(config_file)
    builder = ArchiveBuilder(config.archive)
    job = builder.create_job(str(directory), device_filter=device)
    try:
        artifact = builder.build(job)
    except ArchiveError as exc:
        typer.echo(f"Archive creation failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"{artifact.path} ({artifact.size} bytes)")
    for name in artifact.entry_names():
        typer.echo(f"  {name}")


@app.command("show-config")
def show_config(
    config_file: Optional[Path] = _config_file_option(),
) -> None:
    """Print the effective configuration."""

    config = _load(config_file)
    typer.echo(yaml.safe_dump(config.to_dict(), sort_keys=False))


@app.command("init-config")
def init_config(
    output_path: Path = typer.Argument(Path(".ipsagent.yaml"), help="Where to write the template."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Write a commented configuration template."""

    if output_path.exists() and not force:
        typer.echo(f"{output_path} already exists (use --force to overwrite)", err=True)
        raise typer.Exit(code=1)
    try:
        create_config_template(output_path)
    except ConfigurationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Wrote {output_path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
