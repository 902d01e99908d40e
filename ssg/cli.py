"""Command-line interface for ssg.

This module defines the CLI commands using the Click framework. Directory
flags given before the command override the configuration file.

Commands:
- build: Build the website into the output directory.
- livereload: Serve the website and rebuild it on every change.

Exit codes: 1 when a build fails, 2 for bad arguments or configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .config import Config, load_config
from .errors import BuildError, ConfigError, ContentError, WatchError

_DIR = click.Path(file_okay=False, path_type=Path)


@click.group()
@click.version_option(version=__version__, prog_name="ssg")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file to use",
)
@click.option(
    "--content",
    type=_DIR,
    help="Folder containing markdown articles and related files of any type",
)
@click.option("--static", type=_DIR, help="Folder containing static files (js, css, ...)")
@click.option("--output", type=_DIR, help="Output folder")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path,
    content: Path | None,
    static: Path | None,
    output: Path | None,
    verbose: bool,
):
    """An opinionated static site generator."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(config_path).with_overrides(
            content=content, static=static, output=output
        )
        config.validate()
    except ConfigError as exc:
        raise click.UsageError(f"bad config: {exc}", ctx=ctx) from exc
    ctx.obj = config


def _report_failure(exc: BuildError | ContentError) -> None:
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  File: {exc.source_path}", fg="yellow"), err=True)
    if isinstance(exc, BuildError):
        click.echo(click.style(f"  Phase: {exc.phase}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


@cli.command()
@click.option("--clean", is_flag=True, help="Empty the output folder before building")
@click.pass_obj
def build(config: Config, clean: bool):
    """Build the website into the output folder."""
    from .build import build_site

    try:
        result = build_site(config, clean=clean)
    except (BuildError, ContentError) as exc:
        _report_failure(exc)
        raise SystemExit(1) from None
    click.echo(
        f"Built {len(result.pages)} pages into {config.output_dir} "
        f"({result.files_written} files)"
    )


@cli.command()
@click.option(
    "--check-interval",
    type=float,
    default=1.0,
    show_default=True,
    help="Seconds to wait between checking for changed files",
)
@click.option(
    "--host", default="localhost", show_default=True, help="Host the server listens on"
)
@click.option(
    "--port", type=int, default=10000, show_default=True, help="Port the server listens on"
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port of the live reload websocket server (defaults to port + 1)",
)
@click.pass_obj
def livereload(
    config: Config, check_interval: float, host: str, port: int, ws_port: int | None
):
    """Start a webserver and rebuild the website on every change."""
    if check_interval <= 0:
        raise click.BadParameter("must be positive", param_hint="--check-interval")
    from .server import DevServer

    server = DevServer(
        config,
        host=host,
        http_port=port,
        ws_port=ws_port,
        check_interval=check_interval,
    )
    try:
        server.start()
    except WatchError as exc:
        raise click.ClickException(str(exc)) from exc


def main():
    """Entry point for the CLI application."""
    cli()
