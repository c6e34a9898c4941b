"""
Assembly of container submission requests.

Packs the build context and extra layers, loads the container config and
validates the user options before anything is sent to the service.
"""

import base64
import logging
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
from pydantic import ValidationError as PydanticValidationError

from .config import LayerLimits
from .core.exceptions import PackError, ValidationError
from .models import (
    BuildCompression,
    BuildCompressionMode,
    CondaOpts,
    ContainerConfig,
    ContainerLayer,
    ImageNameStrategy,
    PackagesSpec,
    ScanLevel,
    ScanMode,
    SubmitContainerRequest,
)
from .packing.budget import LayerSet, check_layer
from .packing.ignore import load_ignore_file
from .packing.packer import PackedLayer, pack_layer

log = logging.getLogger(__name__)

VALID_PLATFORMS = (
    "amd64",
    "x86_64",
    "linux/amd64",
    "linux/x86_64",
    "arm64",
    "linux/arm64",
)

ENV_VAR_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=.*$")

DEFAULT_CONDA_CHANNELS = "conda-forge,bioconda"
DEFAULT_MAMBA_IMAGE = "mambaorg/micromamba:1.5.10-noble"


@dataclass
class SubmitOptions:
    """User options for a container submission."""

    image: Optional[str] = None
    containerfile: Optional[str] = None
    context_dir: Optional[str] = None
    layer_dirs: List[str] = field(default_factory=list)
    config_file: Optional[str] = None
    entrypoint: Optional[str] = None
    command: Optional[str] = None
    environment: List[str] = field(default_factory=list)
    working_dir: Optional[str] = None
    platform: Optional[str] = None
    build_repository: Optional[str] = None
    cache_repository: Optional[str] = None
    tower_token: Optional[str] = None
    tower_endpoint: Optional[str] = None
    tower_workspace_id: Optional[int] = None
    freeze: bool = False
    dry_run: bool = False
    mirror: bool = False
    singularity: bool = False
    preserve_timestamps: bool = False
    wait: bool = False
    conda_file: Optional[str] = None
    conda_packages: List[str] = field(default_factory=list)
    conda_base_image: str = DEFAULT_MAMBA_IMAGE
    conda_run_commands: List[str] = field(default_factory=list)
    conda_channels: Optional[str] = DEFAULT_CONDA_CHANNELS
    includes: List[str] = field(default_factory=list)
    name_strategy: Optional[ImageNameStrategy] = None
    scan_mode: Optional[ScanMode] = None
    scan_levels: List[str] = field(default_factory=list)
    build_compression: Optional[BuildCompressionMode] = None


def is_empty(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def is_env_var(value: Optional[str]) -> bool:
    return value is not None and ENV_VAR_RE.match(value) is not None


def parse_conda_channels(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma or blank separated list of Conda channels."""
    if value is None:
        return None
    return [channel.strip() for channel in re.split(r"[, ]", value) if channel.strip()]


def parse_scan_levels(values: List[str]) -> Optional[List[ScanLevel]]:
    """
    Parse vulnerability levels, given repeated or comma separated, any case.

    Raises:
        ValidationError: If a level is not one of low, medium, high, critical
    """
    levels = []
    for value in values:
        for item in value.split(","):
            if not item.strip():
                continue
            try:
                levels.append(ScanLevel(item.strip().upper()))
            except ValueError as e:
                raise ValidationError(
                    f"Invalid scan level: '{item.strip()}' - expected value: "
                    "low, medium, high, critical"
                ) from e
    return levels or None


def validate_submit_options(options: SubmitOptions) -> None:
    """
    Check the submission options for conflicts and missing values.

    Raises:
        ValidationError: On the first invalid or conflicting option
    """
    has_image = not is_empty(options.image)
    has_containerfile = not is_empty(options.containerfile)
    has_conda_file = not is_empty(options.conda_file)
    has_conda_packages = bool(options.conda_packages)
    has_context = not is_empty(options.context_dir)

    if has_image and has_containerfile:
        raise ValidationError(
            "Argument --image and --containerfile conflict each other - Specify an "
            "image name or a container file for the container to be provisioned"
        )

    if not (has_image or has_containerfile or has_conda_file or has_conda_packages):
        raise ValidationError(
            "Provide either a image name or a container file for the Wave "
            "container to be provisioned"
        )

    if is_empty(options.tower_token) and not is_empty(options.build_repository):
        raise ValidationError(
            "Specify the access token required to authenticate the access to the "
            "build repository either by using the --tower-token option or the "
            "TOWER_ACCESS_TOKEN environment variable"
        )

    if has_conda_file and has_conda_packages:
        raise ValidationError("Option --conda-file and --conda-package conflict each other")
    if has_conda_file and has_image:
        raise ValidationError("Option --conda-file and --image conflict each other")
    if has_conda_file and has_containerfile:
        raise ValidationError("Option --conda-file and --containerfile conflict each other")
    if has_conda_packages and has_image:
        raise ValidationError("Option --conda-package and --image conflict each other")
    if has_conda_packages and has_containerfile:
        raise ValidationError(
            "Option --conda-package and --containerfile conflict each other"
        )

    if has_conda_file and not Path(options.conda_file).exists():
        raise ValidationError(
            "The specified Conda file path cannot be accessed - offending file path: "
            f"{options.conda_file}"
        )

    if has_context and not has_containerfile:
        raise ValidationError("Option --context requires the use of a container file")

    if options.singularity and not options.freeze:
        raise ValidationError("Singularity build requires enabling freeze mode")

    if has_context:
        location = Path(options.context_dir)
        if not location.exists():
            raise ValidationError(
                f"Context path does not exists - offending value: {options.context_dir}"
            )
        if not location.is_dir():
            raise ValidationError(
                f"Context path is not a directory - offending value: {options.context_dir}"
            )

    if options.mirror:
        for conflict, flag in (
            (has_containerfile, "--containerfile"),
            (has_conda_file, "--conda-file"),
            (has_conda_packages, "--conda-package"),
            (has_context, "--context"),
            (options.freeze, "--freeze"),
        ):
            if conflict:
                raise ValidationError(f"Argument --mirror and {flag} conflict each other")
        if is_empty(options.build_repository):
            raise ValidationError("Option --mirror requires the use of a build repository")

    if options.dry_run and options.wait:
        raise ValidationError("Options --dry-run and --await conflict each other")

    if not is_empty(options.platform) and options.platform not in VALID_PLATFORMS:
        raise ValidationError(f"Unsupported container platform: '{options.platform}'")

    parse_scan_levels(options.scan_levels)


def _read_resource(value: str) -> bytes:
    # local path, file: uri or http(s) url
    if value.startswith(("http://", "https://")):
        response = httpx.get(value, follow_redirects=True, timeout=30.0)
        response.raise_for_status()
        return response.content
    if value.startswith("file:"):
        return Path(url2pathname(urlparse(value).path)).read_bytes()
    return Path(value).read_bytes()


def encode_path_base64(value: Optional[str]) -> Optional[str]:
    """
    Read a file (local path or URL) and return its content base64 encoded.

    Raises:
        ValidationError: If the resource cannot be found or read
    """
    if is_empty(value):
        return None
    try:
        return base64.b64encode(_read_resource(value)).decode("ascii")
    except FileNotFoundError as e:
        raise ValidationError(f"File not found: {value}") from e
    except (OSError, httpx.HTTPError) as e:
        raise ValidationError(f"Unable to read resource: {value} - reason: {e}") from e


def read_config(path: str) -> ContainerConfig:
    """
    Load a container config JSON file.

    Raises:
        ValidationError: If the file is missing, unreadable or not a valid config
    """
    try:
        content = _read_resource(path)
    except FileNotFoundError as e:
        raise ValidationError(
            f"Invalid container config file - File not found: {path}"
        ) from e
    except (OSError, httpx.HTTPError) as e:
        raise ValidationError(
            f"Unable to read container config file: {path} - Cause: {e}"
        ) from e

    try:
        return ContainerConfig.model_validate_json(content)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid container config file: {path} - Cause: {e}"
        ) from e


def prepare_context(
    context_dir: Optional[str],
    preserve_timestamps: bool = False,
    limits: Optional[LayerLimits] = None,
) -> Optional[PackedLayer]:
    """
    Pack the build context, honouring its ``.dockerignore`` file.

    Returns:
        The packed context layer, or None when no context directory is given

    Raises:
        ValidationError: If the context cannot be packed
        BudgetExceededError: If the context is over its size limit
    """
    if is_empty(context_dir):
        return None

    limits = limits or LayerLimits()
    if sys.platform.startswith("win"):
        log.warning("Build context file permission may not be honoured when using Windows OS")

    root = Path(context_dir)
    try:
        layer = pack_layer(root, load_ignore_file(root), preserve_timestamps)
    except PackError as e:
        raise PackError(
            f"Unexpected error while preparing build context - cause: {e}", path=e.path
        ) from e

    return check_layer(layer, limits.context_layer)


def prepare_config(
    options: SubmitOptions, limits: Optional[LayerLimits] = None
) -> Optional[ContainerConfig]:
    """
    Build the container config from the config file, options and layer dirs.

    Layers keep the order they are given in; the config file layers come first.

    Returns:
        The container config, or None when nothing was configured

    Raises:
        ValidationError: On invalid values or unreadable layers
        BudgetExceededError: If a layer, or all inline layers together, are too big
    """
    limits = limits or LayerLimits()
    config = ContainerConfig()

    if options.config_file is not None:
        if is_empty(options.config_file):
            raise ValidationError("The specified config file is an empty string")
        config = read_config(options.config_file)

    if options.entrypoint is not None:
        config.entrypoint = [options.entrypoint]

    if options.command is not None:
        if is_empty(options.command):
            raise ValidationError("The command cannot be an empty string")
        config.cmd = [options.command]

    if options.environment:
        for item in options.environment:
            if not is_env_var(item):
                raise ValidationError(
                    f"Invalid environment variable syntax - offending value: {item}"
                )
        config.env = list(options.environment)

    if options.working_dir is not None:
        if is_empty(options.working_dir):
            raise ValidationError("The working directory cannot be empty string")
        config.working_dir = options.working_dir

    layers = LayerSet(layer.to_packed() for layer in config.layers)
    for layer_dir in options.layer_dirs:
        path = Path(layer_dir)
        if not path.is_dir():
            raise ValidationError(
                f"Not a valid container layer directory - offending path: {path}"
            )
        try:
            packed = pack_layer(path, preserve_timestamps=options.preserve_timestamps)
        except PackError as e:
            raise PackError(
                f"Unexpected error while packing container layer at path: {path} - {e}",
                path=e.path,
            ) from e
        layers.add(packed, limits.config_layer)
        config.layers.append(ContainerLayer.from_packed(packed))

    layers.check(limits.aggregate)

    return None if config.is_empty() else config


def packages_spec(options: SubmitOptions) -> Optional[PackagesSpec]:
    """
    Build the Conda packages spec from a Conda environment file or package list.

    Returns:
        The packages spec, or None when no Conda option is given
    """
    if not is_empty(options.conda_file):
        environment = encode_path_base64(options.conda_file)
        entries = None
    elif options.conda_packages:
        environment = None
        entries = list(options.conda_packages)
    else:
        return None

    return PackagesSpec(
        environment=environment,
        entries=entries,
        channels=parse_conda_channels(options.conda_channels),
        conda_opts=CondaOpts(
            mamba_image=options.conda_base_image,
            commands=list(options.conda_run_commands) or None,
        ),
    )


def create_request(
    options: SubmitOptions,
    context: Optional[PackedLayer] = None,
    config: Optional[ContainerConfig] = None,
) -> SubmitContainerRequest:
    """Build the submission payload from the options and packed layers."""
    return SubmitContainerRequest(
        container_image=options.image or None,
        container_file=encode_path_base64(options.containerfile),
        packages=packages_spec(options),
        container_config=config,
        build_context=ContainerLayer.from_packed(context) if context else None,
        container_platform=options.platform or None,
        build_repository=options.build_repository or None,
        cache_repository=options.cache_repository or None,
        tower_access_token=options.tower_token,
        tower_workspace_id=options.tower_workspace_id,
        tower_endpoint=options.tower_endpoint,
        format="sif" if options.singularity else None,
        freeze=options.freeze or None,
        dry_run=options.dry_run or None,
        mirror=options.mirror or None,
        timestamp=datetime.now(timezone.utc),
        container_includes=list(options.includes) or None,
        name_strategy=options.name_strategy,
        scan_mode=options.scan_mode,
        scan_levels=parse_scan_levels(options.scan_levels),
        build_compression=(
            BuildCompression(mode=options.build_compression)
            if options.build_compression
            else None
        ),
    )
