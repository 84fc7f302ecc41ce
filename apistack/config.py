"""
Deployment configuration.

Every declaration function receives a `DeploymentConfig` explicitly. Names,
tags and the cross-stack reference path are all derived from it, so two
stacks of the same project never share a resource name.
"""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

OTEL_COLLECTOR_LAYER = (
    "arn:aws:lambda:ap-northeast-1:184161586896:layer:opentelemetry-collector-arm64-0_18_0:1"
)

DEFAULT_BUILD_STAGES = [
    "cargo zigbuild --release --target aarch64-unknown-linux-musl --features lambda",
    'mkdir -p "$ARTIFACT_DIR"',
    'cp "$CARGO_TARGET_DIR/aarch64-unknown-linux-musl/release/api" "$ARTIFACT_DIR/bootstrap"',
    'cp ./aws/collector-config.yaml "$ARTIFACT_DIR/"',
]

DEFAULT_TRIGGERS = [
    "src",
    "Cargo.toml",
    "build.rs",
    "aws/collector-config.yaml",
]


class FunctionSettings(BaseModel):
    """
    Lambda settings shared by every compute unit in the stack.

    Example:
        settings = FunctionSettings(memory_size=512, timeout=30)
    """

    architecture: Literal["arm64", "x86_64"] = Field(
        default="arm64", description="Instruction set architecture"
    )
    runtime: str = Field(default="provided.al2023", description="Managed runtime identifier")
    handler: str = Field(default="bootstrap", description="Handler name")
    package_type: str = Field(default="Zip", description="Deployment package type")
    memory_size: int = Field(default=256, ge=128, le=10240, description="Memory in MB")
    timeout: int = Field(default=10, ge=1, le=900, description="Timeout in seconds")
    ephemeral_storage: int = Field(
        default=512, ge=512, le=10240, description="Ephemeral storage (/tmp) in MB"
    )
    layers: list[str] = Field(
        default_factory=lambda: [OTEL_COLLECTOR_LAYER],
        description="Lambda layer ARNs, pinned by version",
    )
    log_format: Literal["JSON", "Text"] = Field(default="JSON")
    application_log_level: str = Field(default="INFO")
    system_log_level: str = Field(default="WARN")
    environment: dict[str, str] = Field(
        default_factory=lambda: {
            "TZ": "Asia/Tokyo",
            "OPENTELEMETRY_COLLECTOR_CONFIG_URI": "/var/task/collector-config.yaml",
            "RUST_LOG": "info",
        },
        description="Static environment variables",
    )
    authorization_type: Literal["NONE", "AWS_IAM"] = Field(
        default="NONE", description="Function URL authorization"
    )
    invoke_mode: Literal["BUFFERED", "RESPONSE_STREAM"] = Field(
        default="BUFFERED", description="Function URL invoke mode"
    )


class BuildSettings(BaseModel):
    """
    How the deployable artifact is produced.

    Stages run in order inside `work_dir` with ARTIFACT_DIR and
    CARGO_TARGET_DIR set; the first non-zero exit aborts the build.
    `freshness` selects how an existing output directory is judged:
    "digest" compares a recorded hash of the triggers, "presence" only
    checks that the directory exists.
    """

    work_dir: str = Field(default="api", description="Directory the stages run in")
    output_dir: str = Field(default="bin", description="Artifact directory, relative to work_dir")
    target_dir: str = Field(default="target", description="Cargo target directory, relative to work_dir")
    entrypoint: str = Field(default="bootstrap", description="Executable expected in the artifact")
    stages: list[str] = Field(default_factory=lambda: list(DEFAULT_BUILD_STAGES))
    triggers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TRIGGERS),
        description="Files and directories, relative to work_dir, that force a rebuild",
    )
    stamp_file: str = Field(
        default=".build-digest", description="Digest of the last successful build"
    )
    freshness: Literal["digest", "presence"] = Field(default="digest")

    @property
    def artifact_path(self) -> Path:
        return Path(self.work_dir) / self.output_dir

    @property
    def stamp_path(self) -> Path:
        return Path(self.work_dir) / self.stamp_file

    def for_unit(self, unit_id: str) -> "BuildSettings":
        """
        Settings scoped to one compute unit.

        Units bake different bindings into their binaries, so each gets its
        own artifact directory, cargo target directory and digest stamp.
        """
        return self.model_copy(
            update={
                "output_dir": f"{self.output_dir}/{unit_id}",
                "target_dir": f"{self.target_dir}/{unit_id}",
                "stamp_file": f"{self.stamp_file}-{unit_id}",
            }
        )


class DeploymentConfig(BaseModel):
    """
    Everything a declaration needs to know about where it is deployed.

    Example:
        config = DeploymentConfig(project="my-api", stack="dev")
        config.resource_name("api-lambda")  # "dev-my-api-api-lambda"
    """

    project: str = Field(..., min_length=1, description="Pulumi project name")
    stack: str = Field(..., min_length=1, description="Pulumi stack name")
    organization: str = Field(
        default="organization", description="Organization used for stack references"
    )
    reference_stack: str | None = Field(
        default=None, description="Stack whose outputs are read; defaults to this stack"
    )
    function: FunctionSettings = Field(default_factory=FunctionSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)

    @property
    def name_prefix(self) -> str:
        return f"{self.stack}-{self.project}"

    @property
    def reference_path(self) -> str:
        return f"{self.organization}/{self.project}/{self.reference_stack or self.stack}"

    def resource_name(self, *parts: str) -> str:
        """Derive a resource name from the stack/project prefix."""
        return "-".join([self.name_prefix, *parts])

    def tags(self, name: str) -> dict[str, str]:
        return {
            "Name": name,
            "Project": self.project,
            "Stack": self.stack,
            "Environment": self.stack,
            "ManagedBy": "pulumi",
        }

    @classmethod
    def from_pulumi(cls) -> "DeploymentConfig":
        """
        Build the configuration inside a running Pulumi program.

        Reads the project and stack from the engine and optional settings
        from the `apistack` config namespace:

            pulumi config set apistack:organization my-org
            pulumi config set --path apistack:function.memory_size 512
        """
        import pulumi

        cfg = pulumi.Config("apistack")
        data: dict[str, Any] = {
            "project": pulumi.get_project(),
            "stack": pulumi.get_stack(),
        }
        organization = cfg.get("organization")
        if organization:
            data["organization"] = organization
        reference_stack = cfg.get("referenceStack")
        if reference_stack:
            data["reference_stack"] = reference_stack
        data["function"] = cfg.get_object("function") or {}
        data["build"] = cfg.get_object("build") or {}
        return cls.model_validate(data)

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> "DeploymentConfig":
        """
        Load the configuration from a YAML file.

        Keyword overrides that are not None replace top-level keys.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(data)
