"""Main CLI entry point for the Wave CLI."""

from importlib import metadata
from typing import List, Optional

import typer

from ..logger import setup_logging
from ..models import BuildCompressionMode, ImageNameStrategy, ScanMode
from ..request import DEFAULT_CONDA_CHANNELS, DEFAULT_MAMBA_IMAGE
from .utils.output import OutputFormat, console


def get_version() -> str:
    """Get the package version from metadata."""
    try:
        return metadata.version("wave-cli")
    except metadata.PackageNotFoundError:
        return "unknown"


# command: wave
app = typer.Typer(
    name="wave",
    help="Wave CLI - provision containers on demand with the Wave service",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# command: wave <command>


@app.command("submit")
def submit_cmd(
    image: Optional[str] = typer.Option(
        None, "--image", "-i", help="Container image name to be provisioned e.g. alpine:latest"
    ),
    containerfile: Optional[str] = typer.Option(
        None, "--containerfile", "-f", help="Container file to be used to build the image"
    ),
    context_dir: Optional[str] = typer.Option(
        None, "--context", help="Directory used as the build context"
    ),
    layers: List[str] = typer.Option(
        [], "--layer", help="Directory added to the container as a layer (repeatable)"
    ),
    config_file: Optional[str] = typer.Option(
        None, "--config-file", help="Container config file in JSON format (path or URL)"
    ),
    entrypoint: Optional[str] = typer.Option(
        None, "--config-entrypoint", help="Overwrite the default ENTRYPOINT of the image"
    ),
    command: Optional[str] = typer.Option(
        None, "--config-cmd", help="Overwrite the default CMD of the image"
    ),
    environment: List[str] = typer.Option(
        [], "--config-env", help="Environment variable in the NAME=value form (repeatable)"
    ),
    working_dir: Optional[str] = typer.Option(
        None, "--config-working-dir", help="Overwrite the default WORKDIR of the image"
    ),
    conda_file: Optional[str] = typer.Option(
        None, "--conda-file", help="Conda environment file used to build the container"
    ),
    conda_packages: List[str] = typer.Option(
        [],
        "--conda-package",
        "--conda",
        help="Conda package used to build the container e.g. bioconda::samtools=1.17 (repeatable)",
    ),
    conda_base_image: str = typer.Option(
        DEFAULT_MAMBA_IMAGE, "--conda-base-image", help="Conda base image"
    ),
    conda_run_commands: List[str] = typer.Option(
        [], "--conda-run-command", help="Dockerfile RUN command added to the Conda build"
    ),
    conda_channels: str = typer.Option(
        DEFAULT_CONDA_CHANNELS, "--conda-channels", help="Comma separated Conda channels"
    ),
    platform: Optional[str] = typer.Option(
        None, "--platform", help="Platform of the provisioned container, e.g. linux/arm64"
    ),
    build_repository: Optional[str] = typer.Option(
        None,
        "--build-repo",
        "--build-repository",
        help="Repository where the built image is pushed",
    ),
    cache_repository: Optional[str] = typer.Option(
        None,
        "--cache-repo",
        "--cache-repository",
        help="Repository where the build cache is stored",
    ),
    tower_token: Optional[str] = typer.Option(
        None, "--tower-token", help="Platform access token [env: TOWER_ACCESS_TOKEN]"
    ),
    tower_endpoint: Optional[str] = typer.Option(
        None, "--tower-endpoint", help="Platform API endpoint [env: TOWER_API_ENDPOINT]"
    ),
    tower_workspace_id: Optional[int] = typer.Option(
        None, "--tower-workspace-id", help="Platform workspace id [env: TOWER_WORKSPACE_ID]"
    ),
    wave_endpoint: Optional[str] = typer.Option(
        None, "--wave-endpoint", help="Wave service endpoint [env: WAVE_ENDPOINT]"
    ),
    freeze: bool = typer.Option(
        False, "--freeze", "-F", help="Persist the container in the build repository"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Simulate the request without provisioning"
    ),
    mirror: bool = typer.Option(
        False, "--mirror", "-m", help="Mirror the image into the build repository"
    ),
    singularity: bool = typer.Option(
        False, "--singularity", "-s", help="Build a Singularity container (requires --freeze)"
    ),
    preserve_timestamps: bool = typer.Option(
        False, "--preserve-timestamp", help="Keep file timestamps in packed layers"
    ),
    includes: List[str] = typer.Option(
        [], "--include", help="Container image to include in the base image (repeatable)"
    ),
    name_strategy: Optional[ImageNameStrategy] = typer.Option(
        None, "--name-strategy", case_sensitive=False, help="Naming of the target image"
    ),
    scan_mode: Optional[ScanMode] = typer.Option(
        None, "--scan-mode", case_sensitive=False, help="Container security scan mode"
    ),
    scan_levels: List[str] = typer.Option(
        [],
        "--scan-level",
        help="Allowed vulnerability levels e.g. low,medium (repeatable)",
    ),
    build_compression: Optional[BuildCompressionMode] = typer.Option(
        None,
        "--build-compression",
        case_sensitive=False,
        help="Compression of the built image layers",
    ),
    wait: bool = typer.Option(
        False, "--await", help="Wait for the container to be provisioned"
    ),
    timeout: str = typer.Option(
        "15m", "--timeout", help="Max time to wait with --await, e.g. 30s, 10m, 1h"
    ),
    output: Optional[OutputFormat] = typer.Option(
        None, "--output", "-o", help="Output format"
    ),
):
    """Submit a container request to the Wave service."""
    from ..request import SubmitOptions
    from .commands.submit import submit_command

    options = SubmitOptions(
        image=image,
        containerfile=containerfile,
        context_dir=context_dir,
        layer_dirs=list(layers),
        config_file=config_file,
        entrypoint=entrypoint,
        command=command,
        environment=list(environment),
        working_dir=working_dir,
        platform=platform,
        build_repository=build_repository,
        cache_repository=cache_repository,
        tower_token=tower_token,
        tower_endpoint=tower_endpoint,
        tower_workspace_id=tower_workspace_id,
        freeze=freeze,
        dry_run=dry_run,
        mirror=mirror,
        singularity=singularity,
        preserve_timestamps=preserve_timestamps,
        wait=wait,
        conda_file=conda_file,
        conda_packages=list(conda_packages),
        conda_base_image=conda_base_image,
        conda_run_commands=list(conda_run_commands),
        conda_channels=conda_channels,
        includes=list(includes),
        name_strategy=name_strategy,
        scan_mode=scan_mode,
        scan_levels=list(scan_levels),
        build_compression=build_compression,
    )
    return submit_command(options, timeout, output, wave_endpoint)


@app.command("inspect")
def inspect_cmd(
    image: str = typer.Argument(..., help="Container image to inspect"),
    output: Optional[OutputFormat] = typer.Option(
        None, "--output", "-o", help="Output format (default: json)"
    ),
    tower_token: Optional[str] = typer.Option(None, "--tower-token"),
    tower_endpoint: Optional[str] = typer.Option(None, "--tower-endpoint"),
    tower_workspace_id: Optional[int] = typer.Option(None, "--tower-workspace-id"),
    wave_endpoint: Optional[str] = typer.Option(None, "--wave-endpoint"),
):
    """Show the container spec of an image."""
    from .commands.inspect import inspect_command

    return inspect_command(
        image, output, tower_token, tower_endpoint, tower_workspace_id, wave_endpoint
    )


@app.command("info")
def info_cmd(
    wave_endpoint: Optional[str] = typer.Option(None, "--wave-endpoint"),
):
    """Show client and service versions."""
    from .commands.info import info_command

    return info_command(get_version(), wave_endpoint)


@app.command("pack")
def pack_cmd(
    directory: str = typer.Argument(..., help="Directory to pack"),
    preserve_timestamps: bool = typer.Option(False, "--preserve-timestamp"),
    max_size: Optional[int] = typer.Option(
        None, "--max-size", help="Fail when the compressed layer is over this many bytes"
    ),
    output: Optional[OutputFormat] = typer.Option(None, "--output", "-o"),
):
    """Pack a directory locally and show its sizes and digests."""
    from .commands.pack import pack_command

    return pack_command(directory, preserve_timestamps, max_size, output)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version"),
    log_level: str = typer.Option(
        "WARNING", "--log-level", help="Log level: DEBUG, INFO, WARNING or ERROR"
    ),
):
    """Wave CLI - provision containers on demand with the Wave service."""
    if version:
        console.print(f"Wave CLI v{get_version()}", highlight=False)
        raise typer.Exit()

    setup_logging(log_level)


if __name__ == "__main__":
    app()
