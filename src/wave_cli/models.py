"""Request and response models exchanged with the Wave service."""

import copy
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .packing.packer import PackedLayer


class WaveModel(BaseModel):
    """Base class for all service payloads (camelCase on the wire)."""

    model_config = ConfigDict(
        validate_by_name=True,
        serialize_by_alias=True,
        extra="ignore",
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True, by_alias=True)


class ContainerLayer(WaveModel):
    location: str
    gzip_digest: str = Field(alias="gzipDigest")
    gzip_size: int = Field(alias="gzipSize")
    tar_digest: Optional[str] = Field(default=None, alias="tarDigest")
    skip_hashing: Optional[bool] = Field(default=None, alias="skipHashing")

    @classmethod
    def from_packed(cls, layer: PackedLayer) -> "ContainerLayer":
        return cls(
            location=layer.location,
            gzip_digest=layer.digest,
            gzip_size=layer.compressed_size,
            tar_digest=layer.tar_digest,
        )

    def to_packed(self) -> PackedLayer:
        if self.location.startswith("data:"):
            # inline layers from a config file keep their embedded bytes in the uri
            return PackedLayer(
                location=self.location,
                digest=self.gzip_digest,
                compressed_size=self.gzip_size,
                tar_digest=self.tar_digest,
            )
        return PackedLayer.external(
            self.location, self.gzip_digest, self.gzip_size, self.tar_digest
        )


class ContainerConfig(WaveModel):
    entrypoint: Optional[List[str]] = None
    cmd: Optional[List[str]] = None
    env: Optional[List[str]] = None
    working_dir: Optional[str] = Field(default=None, alias="workingDir")
    layers: List[ContainerLayer] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.entrypoint or self.cmd or self.env or self.working_dir or self.layers
        )


class PackagesType(str, Enum):
    CONDA = "CONDA"


class CondaOpts(WaveModel):
    mamba_image: Optional[str] = Field(default=None, alias="mambaImage")
    commands: Optional[List[str]] = None
    base_packages: Optional[str] = Field(default=None, alias="basePackages")


class PackagesSpec(WaveModel):
    """Packages the service installs into a base image to build the container.

    Either ``environment`` (a base64 encoded environment file) or ``entries``
    (package names) is set.
    """

    type: PackagesType = PackagesType.CONDA
    environment: Optional[str] = None
    entries: Optional[List[str]] = None
    channels: Optional[List[str]] = None
    conda_opts: Optional[CondaOpts] = Field(default=None, alias="condaOpts")


class ImageNameStrategy(str, Enum):
    NONE = "none"
    TAG_PREFIX = "tagPrefix"
    IMAGE_SUFFIX = "imageSuffix"


class ScanMode(str, Enum):
    NONE = "none"
    ASYNC = "async"
    REQUIRED = "required"


class ScanLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class BuildCompressionMode(str, Enum):
    GZIP = "gzip"
    ZSTD = "zstd"
    ESTARGZ = "estargz"


class BuildCompression(WaveModel):
    mode: BuildCompressionMode


class SubmitContainerRequest(WaveModel):
    container_image: Optional[str] = Field(default=None, alias="containerImage")
    container_file: Optional[str] = Field(default=None, alias="containerFile")
    packages: Optional[PackagesSpec] = None
    container_config: Optional[ContainerConfig] = Field(
        default=None, alias="containerConfig"
    )
    build_context: Optional[ContainerLayer] = Field(default=None, alias="buildContext")
    container_platform: Optional[str] = Field(default=None, alias="containerPlatform")
    build_repository: Optional[str] = Field(default=None, alias="buildRepository")
    cache_repository: Optional[str] = Field(default=None, alias="cacheRepository")
    tower_access_token: Optional[str] = Field(default=None, alias="towerAccessToken")
    tower_workspace_id: Optional[int] = Field(default=None, alias="towerWorkspaceId")
    tower_endpoint: Optional[str] = Field(default=None, alias="towerEndpoint")
    format: Optional[str] = None
    freeze: Optional[bool] = None
    dry_run: Optional[bool] = Field(default=None, alias="dryRun")
    mirror: Optional[bool] = None
    timestamp: Optional[datetime] = None
    container_includes: Optional[List[str]] = Field(
        default=None, alias="containerIncludes"
    )
    name_strategy: Optional[ImageNameStrategy] = Field(
        default=None, alias="nameStrategy"
    )
    scan_mode: Optional[ScanMode] = Field(default=None, alias="scanMode")
    scan_levels: Optional[List[ScanLevel]] = Field(default=None, alias="scanLevels")
    build_compression: Optional[BuildCompression] = Field(
        default=None, alias="buildCompression"
    )


class ContainerInspectRequest(WaveModel):
    container_image: str = Field(alias="containerImage")
    tower_access_token: Optional[str] = Field(default=None, alias="towerAccessToken")
    tower_workspace_id: Optional[int] = Field(default=None, alias="towerWorkspaceId")
    tower_endpoint: Optional[str] = Field(default=None, alias="towerEndpoint")


class SubmitContainerResponse(WaveModel):
    request_id: Optional[str] = Field(default=None, alias="requestId")
    container_token: Optional[str] = Field(default=None, alias="containerToken")
    target_image: Optional[str] = Field(default=None, alias="targetImage")
    expiration: Optional[datetime] = None
    container_image: Optional[str] = Field(default=None, alias="containerImage")
    build_id: Optional[str] = Field(default=None, alias="buildId")
    cached: Optional[bool] = None
    freeze: Optional[bool] = None
    mirror: Optional[bool] = None
    succeeded: Optional[bool] = None


class BuildStatusValue(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


def _decode_duration(value: Any) -> Optional[timedelta]:
    # nanoseconds as integer, or seconds when the value carries a fraction
    if value is None or isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError("duration must be a number")
    if isinstance(value, int):
        return timedelta(microseconds=value / 1000)
    if isinstance(value, float):
        return timedelta(seconds=value)
    if isinstance(value, str):
        text = value.strip()
        if "." in text:
            return timedelta(seconds=float(text))
        return timedelta(microseconds=int(text) / 1000)
    raise ValueError(f"unsupported duration value: {value!r}")


class BuildStatus(WaveModel):
    """Status of a build as reported by the service; never built locally."""

    id: Optional[str] = None
    status: BuildStatusValue
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    duration: Optional[timedelta] = None
    succeeded: Optional[bool] = None
    reason: Optional[str] = None
    details_uri: Optional[str] = Field(default=None, alias="detailsUri")
    vulnerabilities: Optional[Dict[str, int]] = None

    @field_validator("duration", mode="before")
    @classmethod
    def decode_duration(cls, value: Any) -> Optional[timedelta]:
        return _decode_duration(value)

    @field_serializer("duration")
    def serialize_duration(self, value: Optional[timedelta]) -> Optional[float]:
        return value.total_seconds() if value is not None else None

    @property
    def is_terminal(self) -> bool:
        return self.status != BuildStatusValue.PENDING


class ServiceInfo(WaveModel):
    version: Optional[str] = None
    commit_id: Optional[str] = Field(default=None, alias="commitId")


class ServiceInfoResponse(WaveModel):
    service_info: ServiceInfo = Field(alias="serviceInfo")


def with_layer_uris(inspect_response: Dict[str, Any]) -> Dict[str, Any]:
    """
    Add the registry blob ``uri`` to every manifest layer of an inspect response.

    The uri is ``{hostName}/v2/{imageName}/blobs/{digest}``. The response is
    copied; a spec without host or image name is returned unchanged.
    """
    result = copy.deepcopy(inspect_response)
    spec = result.get("container")
    if not isinstance(spec, dict):
        return result

    host_name = spec.get("hostName")
    image_name = spec.get("imageName")
    manifest = spec.get("manifest")
    if not host_name or not image_name or not isinstance(manifest, dict):
        return result

    for layer in manifest.get("layers") or []:
        if isinstance(layer, dict) and layer.get("digest"):
            layer["uri"] = f"{host_name}/v2/{image_name}/blobs/{layer['digest']}"
    return result


class AwaitedResponse(SubmitContainerResponse):
    """Submission response merged with the final build status."""

    status: Optional[BuildStatusValue] = None
    duration: Optional[timedelta] = None
    vulnerabilities: Optional[Dict[str, int]] = None
    reason: Optional[str] = None
    details_uri: Optional[str] = Field(default=None, alias="detailsUri")

    @field_serializer("duration")
    def serialize_duration(self, value: Optional[timedelta]) -> Optional[float]:
        return value.total_seconds() if value is not None else None

    @classmethod
    def merge(
        cls, response: SubmitContainerResponse, status: BuildStatus
    ) -> "AwaitedResponse":
        succeeded = status.succeeded
        if succeeded is None:
            succeeded = status.status == BuildStatusValue.COMPLETED

        data = response.model_dump(by_alias=False)
        data.update(
            status=status.status,
            duration=status.duration,
            vulnerabilities=status.vulnerabilities,
            succeeded=succeeded,
            reason=status.reason,
            details_uri=status.details_uri,
        )
        return cls(**data)
