"""Tests for container request assembly."""

import base64
import json

import pytest

from wave_cli.config import LayerLimits
from wave_cli.core.exceptions import BudgetExceededError, PackError, ValidationError
from wave_cli.models import BuildCompressionMode, ImageNameStrategy, ScanLevel, ScanMode
from wave_cli.packing.ignore import IGNORE_FILE
from wave_cli.request import (
    DEFAULT_MAMBA_IMAGE,
    SubmitOptions,
    create_request,
    encode_path_base64,
    is_env_var,
    packages_spec,
    parse_conda_channels,
    parse_scan_levels,
    prepare_config,
    prepare_context,
    read_config,
    validate_submit_options,
)


class TestValidateSubmitOptions:
    """Test option validation."""

    def test_image_only_is_valid(self):
        validate_submit_options(SubmitOptions(image="ubuntu:latest"))

    @pytest.mark.parametrize(
        "options, message",
        [
            (SubmitOptions(image="alpine", containerfile="Dockerfile"), "conflict"),
            (SubmitOptions(), "Provide either a image name or a container file"),
            (
                SubmitOptions(image="alpine", build_repository="quay.io/org/repo"),
                "access token",
            ),
            (
                SubmitOptions(
                    image="alpine",
                    mirror=True,
                    freeze=True,
                    tower_token="t",
                    build_repository="quay.io/org/repo",
                ),
                "--mirror and --freeze",
            ),
            (SubmitOptions(image="alpine", mirror=True), "requires the use of a build"),
            (SubmitOptions(image="alpine", dry_run=True, wait=True), "--dry-run"),
            (SubmitOptions(image="alpine", platform="linux/s390x"), "Unsupported"),
            (
                SubmitOptions(conda_file="env.yml", conda_packages=["numpy"]),
                "--conda-file and --conda-package",
            ),
            (
                SubmitOptions(image="alpine", conda_packages=["numpy"]),
                "--conda-package and --image",
            ),
            (
                SubmitOptions(containerfile="Dockerfile", conda_file="env.yml"),
                "--conda-file and --containerfile",
            ),
            (SubmitOptions(conda_file="missing.yml"), "cannot be accessed"),
            (
                SubmitOptions(image="alpine", context_dir="ctx"),
                "--context requires the use of a container file",
            ),
            (SubmitOptions(image="alpine", singularity=True), "freeze mode"),
            (
                SubmitOptions(containerfile="Dockerfile", context_dir="missing-ctx"),
                "Context path does not exists",
            ),
            (
                SubmitOptions(
                    conda_packages=["numpy"],
                    mirror=True,
                    tower_token="t",
                    build_repository="quay.io/org/repo",
                ),
                "--mirror and --conda-package",
            ),
            (SubmitOptions(image="alpine", scan_levels=["low,severe"]), "severe"),
        ],
    )
    def test_invalid_options(self, options, message):
        with pytest.raises(ValidationError, match=message):
            validate_submit_options(options)

    def test_conda_packages_only_is_valid(self):
        validate_submit_options(SubmitOptions(conda_packages=["numpy"]))

    def test_context_must_be_a_directory(self, tmp_path):
        context = tmp_path / "context.txt"
        context.write_text("not a directory")

        with pytest.raises(ValidationError, match="not a directory"):
            validate_submit_options(
                SubmitOptions(containerfile="Dockerfile", context_dir=str(context))
            )

    def test_mirror_conflicts_with_container_build(self, context_dir):
        options = SubmitOptions(
            containerfile="Dockerfile",
            context_dir=str(context_dir),
            mirror=True,
            tower_token="t",
            build_repository="quay.io/org/repo",
        )

        with pytest.raises(ValidationError, match="--mirror and --containerfile"):
            validate_submit_options(options)

    @pytest.mark.parametrize("platform", ["amd64", "linux/arm64", "linux/x86_64"])
    def test_supported_platforms(self, platform):
        validate_submit_options(SubmitOptions(image="alpine", platform=platform))


class TestEnvVars:
    @pytest.mark.parametrize("value", ["FOO=bar", "_X=", "PATH=/usr/bin:/bin"])
    def test_valid(self, value):
        assert is_env_var(value)

    @pytest.mark.parametrize("value", ["FOO", "=bar", "1FOO=bar", None])
    def test_invalid(self, value):
        assert not is_env_var(value)


class TestPrepareContext:
    """Test packing of the build context."""

    def test_no_context(self):
        assert prepare_context(None) is None

    def test_honours_ignore_file(self, context_dir):
        (context_dir / IGNORE_FILE).write_text("*.log\n!sub/c.log\n")

        layer = prepare_context(str(context_dir))

        assert layer.is_inline
        assert layer.source == str(context_dir)

    def test_ignore_file_changes_digest(self, context_dir):
        before = prepare_context(str(context_dir))
        (context_dir / IGNORE_FILE).write_text("b.log\n")

        assert prepare_context(str(context_dir)).digest != before.digest

    def test_context_over_limit(self, context_dir):
        with pytest.raises(BudgetExceededError) as exc_info:
            prepare_context(str(context_dir), limits=LayerLimits(context_layer=16))

        assert exc_info.value.limit == 16
        assert exc_info.value.offending_path == str(context_dir)

    def test_missing_context(self, tmp_path):
        with pytest.raises(PackError, match="preparing build context"):
            prepare_context(str(tmp_path / "missing"))


class TestPrepareConfig:
    """Test the container config assembly."""

    def test_empty_options_give_no_config(self):
        assert prepare_config(SubmitOptions(image="alpine")) is None

    def test_applies_options(self):
        config = prepare_config(
            SubmitOptions(
                image="alpine",
                entrypoint="/bin/sh",
                command="-c",
                environment=["A=1", "B=two"],
                working_dir="/work",
            )
        )

        assert config.entrypoint == ["/bin/sh"]
        assert config.cmd == ["-c"]
        assert config.env == ["A=1", "B=two"]
        assert config.working_dir == "/work"

    def test_invalid_env_var(self):
        with pytest.raises(ValidationError, match="offending value: NOPE"):
            prepare_config(SubmitOptions(image="alpine", environment=["NOPE"]))

    @pytest.mark.parametrize(
        "options",
        [
            SubmitOptions(image="alpine", command="  "),
            SubmitOptions(image="alpine", working_dir=""),
            SubmitOptions(image="alpine", config_file=""),
        ],
    )
    def test_empty_values_rejected(self, options):
        with pytest.raises(ValidationError):
            prepare_config(options)

    def test_layer_directories_keep_order(self, tmp_path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        for layer_dir in (first, second):
            layer_dir.mkdir()
            (layer_dir / "file.txt").write_text(layer_dir.name)

        config = prepare_config(
            SubmitOptions(image="alpine", layer_dirs=[str(first), str(second)])
        )

        assert len(config.layers) == 2
        assert config.layers[0].gzip_digest != config.layers[1].gzip_digest
        assert all(layer.location.startswith("data:") for layer in config.layers)

    def test_layer_directory_is_not_filtered(self, context_dir):
        (context_dir / IGNORE_FILE).write_text("*\n")

        config = prepare_config(
            SubmitOptions(image="alpine", layer_dirs=[str(context_dir)])
        )

        assert config.layers[0].gzip_size > 0

    def test_invalid_layer_directory(self, tmp_path):
        with pytest.raises(ValidationError, match="Not a valid container layer"):
            prepare_config(
                SubmitOptions(image="alpine", layer_dirs=[str(tmp_path / "missing")])
            )

    def test_layer_over_limit(self, context_dir):
        with pytest.raises(BudgetExceededError):
            prepare_config(
                SubmitOptions(image="alpine", layer_dirs=[str(context_dir)]),
                limits=LayerLimits(config_layer=16),
            )

    def test_aggregate_over_limit(self, context_dir):
        single = prepare_config(
            SubmitOptions(image="alpine", layer_dirs=[str(context_dir)])
        ).layers[0]

        with pytest.raises(BudgetExceededError) as exc_info:
            prepare_config(
                SubmitOptions(
                    image="alpine", layer_dirs=[str(context_dir), str(context_dir)]
                ),
                limits=LayerLimits(aggregate=2 * single.gzip_size),
            )

        assert exc_info.value.actual == 2 * single.gzip_size

    def test_config_file_layers_come_first(self, tmp_path, context_dir):
        config_file = tmp_path / "config.json"
        config_file.write_text(
            json.dumps(
                {
                    "workingDir": "/data",
                    "layers": [
                        {
                            "location": "https://storage.test/base.tar.gz",
                            "gzipDigest": "sha256:base",
                            "gzipSize": 50 * 1024 * 1024,
                        }
                    ],
                }
            )
        )

        config = prepare_config(
            SubmitOptions(
                image="alpine",
                config_file=str(config_file),
                layer_dirs=[str(context_dir)],
            )
        )

        assert config.working_dir == "/data"
        assert [layer.gzip_digest for layer in config.layers][0] == "sha256:base"
        assert len(config.layers) == 2


class TestReadConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match="File not found"):
            read_config(str(tmp_path / "missing.json"))

    def test_invalid_content(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text('{"layers": "nope"}')

        with pytest.raises(ValidationError, match="Invalid container config file"):
            read_config(str(config_file))

    def test_file_uri(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text('{"env": ["A=1"]}')

        assert read_config(config_file.as_uri()).env == ["A=1"]


class TestCondaPackages:
    """Test the Conda packages spec sent for package based builds."""

    @pytest.mark.parametrize(
        "value, channels",
        [
            ("conda-forge,bioconda", ["conda-forge", "bioconda"]),
            ("conda-forge, bioconda  defaults", ["conda-forge", "bioconda", "defaults"]),
            ("", []),
            (None, None),
        ],
    )
    def test_parse_channels(self, value, channels):
        assert parse_conda_channels(value) == channels

    def test_no_conda_options(self):
        assert packages_spec(SubmitOptions(image="alpine")) is None

    def test_package_entries(self):
        spec = packages_spec(
            SubmitOptions(
                conda_packages=["bioconda::samtools=1.17", "numpy"],
                conda_run_commands=["RUN echo hello"],
            )
        )

        assert spec.to_payload() == {
            "type": "CONDA",
            "entries": ["bioconda::samtools=1.17", "numpy"],
            "channels": ["conda-forge", "bioconda"],
            "condaOpts": {
                "mambaImage": DEFAULT_MAMBA_IMAGE,
                "commands": ["RUN echo hello"],
            },
        }

    def test_environment_file_is_encoded(self, tmp_path):
        conda_file = tmp_path / "environment.yml"
        conda_file.write_text("dependencies:\n  - numpy\n")

        spec = packages_spec(
            SubmitOptions(conda_file=str(conda_file), conda_channels="bioconda")
        )

        assert base64.b64decode(spec.environment) == conda_file.read_bytes()
        assert spec.entries is None
        assert spec.channels == ["bioconda"]


class TestScanLevels:
    def test_repeated_and_comma_separated(self):
        assert parse_scan_levels(["low,Medium", "HIGH"]) == [
            ScanLevel.LOW,
            ScanLevel.MEDIUM,
            ScanLevel.HIGH,
        ]

    def test_empty(self):
        assert parse_scan_levels([]) is None

    def test_invalid(self):
        with pytest.raises(ValidationError, match="Invalid scan level: 'severe'"):
            parse_scan_levels(["severe"])


class TestCreateRequest:
    def test_encodes_containerfile(self, tmp_path, context_dir):
        containerfile = tmp_path / "Dockerfile"
        containerfile.write_text("FROM alpine\nCOPY a.txt /\n")
        options = SubmitOptions(
            containerfile=str(containerfile),
            context_dir=str(context_dir),
            platform="linux/arm64",
            singularity=True,
            freeze=True,
            tower_token="token",
            build_repository="quay.io/org/repo",
        )

        request = create_request(options, prepare_context(options.context_dir))
        payload = request.to_payload()

        assert base64.b64decode(payload["containerFile"]) == containerfile.read_bytes()
        assert payload["buildContext"]["location"].startswith("data:")
        assert payload["containerPlatform"] == "linux/arm64"
        assert payload["format"] == "sif"
        assert payload["freeze"] is True
        assert payload["towerAccessToken"] == "token"
        assert "timestamp" in payload
        assert "dryRun" not in payload

    def test_image_request(self):
        payload = create_request(SubmitOptions(image="alpine")).to_payload()

        assert payload["containerImage"] == "alpine"
        assert "containerFile" not in payload
        assert "buildContext" not in payload

    def test_conda_request(self):
        options = SubmitOptions(
            conda_packages=["numpy"],
            includes=["busybox"],
            name_strategy=ImageNameStrategy.TAG_PREFIX,
            scan_mode=ScanMode.REQUIRED,
            scan_levels=["low,high"],
            build_compression=BuildCompressionMode.ZSTD,
        )

        payload = create_request(options).to_payload()

        assert "containerImage" not in payload
        assert payload["packages"]["entries"] == ["numpy"]
        assert payload["containerIncludes"] == ["busybox"]
        assert payload["nameStrategy"] == "tagPrefix"
        assert payload["scanMode"] == "required"
        assert payload["scanLevels"] == ["LOW", "HIGH"]
        assert payload["buildCompression"] == {"mode": "zstd"}

    def test_missing_containerfile(self, tmp_path):
        with pytest.raises(ValidationError, match="File not found"):
            encode_path_base64(str(tmp_path / "Dockerfile"))
