"""
Build-and-package step for the Lambda artifact.

The artifact directory is either Fresh (reused as is) or Stale (rebuilt
synchronously before anything references it). Freshness is decided from a
sha256 digest of the trigger inputs and the build environment, recorded
next to the artifact after every successful build. Every compute unit
builds into its own artifact directory with its own stamp.
"""

import hashlib
import os
import shlex
import shutil
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pulumi
from pulumi_command import local

from apistack.config import BuildSettings, DeploymentConfig
from apistack.errors import BuildError
from apistack.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Stale:
    """The artifact must be (re)built."""

    reason: str


@dataclass(frozen=True)
class Fresh:
    """The artifact at `path` matches the current inputs."""

    path: Path


BuildState = Stale | Fresh


@dataclass(frozen=True)
class BuildResult:
    path: Path
    built: bool
    digest: str


def build_environment(config: DeploymentConfig, **extra: pulumi.Input[str]) -> dict[str, pulumi.Input[str]]:
    """Environment bindings passed to the build stages on top of os.environ."""
    return {"PULUMI_STACK": config.stack, **extra}


def trigger_digest(
    work_dir: str | Path,
    triggers: list[str],
    environment: Mapping[str, str] | None = None,
) -> str:
    """
    Hash the trigger inputs and build environment.

    Directories are walked recursively. Both the path relative to
    `work_dir` and the content of every file are hashed, so renames count
    as changes.

    Raises:
        BuildError: If a trigger does not exist
    """
    base = Path(work_dir)
    digest = hashlib.sha256()

    for trigger in sorted(triggers):
        path = base / trigger
        if not path.exists():
            raise BuildError(f"Trigger input not found: {path}")

        if path.is_dir():
            files = sorted(p for p in path.rglob("*") if p.is_file())
        else:
            files = [path]

        for file in files:
            digest.update(file.relative_to(base).as_posix().encode())
            digest.update(b"\0")
            digest.update(file.read_bytes())
            digest.update(b"\0")

    for key in sorted(environment or {}):
        digest.update(f"{key}={environment[key]}".encode())
        digest.update(b"\0")

    return digest.hexdigest()


def read_recorded_digest(settings: BuildSettings) -> str | None:
    stamp = settings.stamp_path
    if not stamp.is_file():
        return None
    return stamp.read_text().strip() or None


def decide(settings: BuildSettings, digest: str) -> BuildState:
    """
    Decide whether the artifact on disk can be reused.

    In "presence" mode an existing output directory is always Fresh. In
    "digest" mode it also needs the entry point and a recorded digest equal
    to `digest`.
    """
    artifact = settings.artifact_path
    if not artifact.is_dir():
        return Stale("artifact directory missing")

    if settings.freshness == "presence":
        return Fresh(artifact)

    if not (artifact / settings.entrypoint).is_file():
        return Stale(f"{settings.entrypoint} missing from artifact")

    recorded = read_recorded_digest(settings)
    if recorded is None:
        return Stale("no recorded build digest")
    if recorded != digest:
        return Stale("trigger inputs changed")

    return Fresh(artifact)


def _discard(settings: BuildSettings) -> None:
    shutil.rmtree(settings.artifact_path, ignore_errors=True)
    settings.stamp_path.unlink(missing_ok=True)


def stage_environment(settings: BuildSettings, bindings: Mapping[str, Any]) -> dict[str, Any]:
    """Bindings plus the per-unit artifact and cargo target directories."""
    return {
        **bindings,
        "ARTIFACT_DIR": settings.output_dir,
        "CARGO_TARGET_DIR": settings.target_dir,
    }


def build_script(settings: BuildSettings, digest: str | None = None) -> str:
    """
    Render the stages as one fail-fast shell script.

    Each stage runs in its own subshell; the first non-zero exit discards
    the output directory and digest stamp and exits with that code. When a
    digest is given it is recorded after a successful build, and in digest
    mode the script exits early if the recorded digest already matches.
    """
    artifact = shlex.quote(settings.output_dir)
    stamp = shlex.quote(settings.stamp_file)
    entrypoint = shlex.quote(f"{settings.output_dir}/{settings.entrypoint}")
    discard = f"rm -rf {artifact} {stamp}"

    lines = []
    if digest is not None and settings.freshness == "digest":
        lines.append(
            f'if [ -f {entrypoint} ] && [ "$(cat {stamp} 2>/dev/null)" = {shlex.quote(digest)} ]; '
            "then exit 0; fi"
        )
    for stage in settings.stages:
        lines.append(f"( {stage} ) || {{ rc=$?; {discard}; exit $rc; }}")
    lines.append(
        f"[ -f {entrypoint} ] || {{ {discard}; "
        f"echo {shlex.quote(f'build did not produce {settings.entrypoint}')} >&2; exit 1; }}"
    )
    if digest is not None:
        lines.append(f"printf '%s\\n' {shlex.quote(digest)} > {stamp}")
    return "\n".join(lines) + "\n"


def run_build(
    settings: BuildSettings,
    environment: Mapping[str, str] | None = None,
    digest: str | None = None,
) -> Path:
    """
    Run the build stages synchronously, stopping at the first failure.

    On failure the output directory and digest stamp are removed so a
    partial artifact is never packaged.

    Args:
        settings: Build settings
        environment: Bindings added to the inherited process environment
        digest: Digest to record once the build succeeds

    Returns:
        Path to the artifact directory

    Raises:
        BuildError: If a stage exits non-zero or the entry point is missing
    """
    work_dir = Path(settings.work_dir)
    if not work_dir.is_dir():
        raise BuildError(f"Build directory not found: {work_dir}")

    env = {**os.environ, **stage_environment(settings, environment or {})}

    for stage in settings.stages:
        logger.info("Running build stage: %s", stage)
        result = subprocess.run(stage, shell=True, cwd=work_dir, env=env)
        if result.returncode != 0:
            _discard(settings)
            raise BuildError(
                f"Build stage failed with exit code {result.returncode}: {stage}",
                stage=stage,
                returncode=result.returncode,
            )

    artifact = settings.artifact_path
    if not (artifact / settings.entrypoint).is_file():
        _discard(settings)
        raise BuildError(f"Build did not produce {artifact / settings.entrypoint}")

    if digest is not None:
        settings.stamp_path.write_text(digest + "\n")

    return artifact


def ensure_artifact(
    settings: BuildSettings,
    environment: Mapping[str, str] | None = None,
    force: bool = False,
) -> BuildResult:
    """Return the artifact directory, building it first when it is Stale."""
    environment = dict(environment or {})
    digest = trigger_digest(settings.work_dir, settings.triggers, environment)
    state = Stale("rebuild forced") if force else decide(settings, digest)

    if isinstance(state, Fresh):
        logger.info("Reusing artifact at %s", state.path)
        return BuildResult(path=state.path, built=False, digest=digest)

    logger.info("Building artifact in %s (%s)", settings.work_dir, state.reason)
    path = run_build(settings, environment, digest)
    return BuildResult(path=path, built=True, digest=digest)


def trigger_assets(settings: BuildSettings) -> list[pulumi.Asset | pulumi.Archive]:
    """Trigger inputs as Pulumi assets; directories become archives."""
    assets: list[pulumi.Asset | pulumi.Archive] = []
    for trigger in settings.triggers:
        path = Path(settings.work_dir) / trigger
        if path.is_dir():
            assets.append(pulumi.FileArchive(str(path)))
        else:
            assets.append(pulumi.FileAsset(str(path)))
    return assets


@dataclass
class BuildDeclaration:
    """The build command of one unit and the archive packaged from it."""

    command: local.Command
    archive: pulumi.Output[pulumi.FileArchive]


def declare_build(
    config: DeploymentConfig,
    unit_id: str,
    environment: Mapping[str, pulumi.Input[str]],
) -> BuildDeclaration:
    """
    Declare the build of one compute unit and package its artifact.

    The build runs as a `local.Command` whose triggers are the unit's input
    files, so Pulumi re-runs it whenever one of them changes. The archive
    waits for every environment binding to resolve (some come from another
    stack). A Fresh artifact is packaged once the command has run; a Stale
    one is rebuilt inline with `local.run_output` first, so the function
    never references an artifact that does not exist yet.

    Args:
        config: Deployment configuration
        unit_id: Compute unit, used to scope the artifact directory
        environment: Build bindings

    Returns:
        BuildDeclaration with the command resource and the archive
    """
    settings = config.build.for_unit(unit_id)
    resolved = pulumi.Output.all(**environment)

    def script(env: dict[str, str]) -> str:
        return build_script(settings, trigger_digest(settings.work_dir, settings.triggers, env))

    command = local.Command(
        f"{config.resource_name(unit_id)}-build",
        create=resolved.apply(script),
        dir=settings.work_dir,
        triggers=trigger_assets(settings),
        environment=stage_environment(settings, environment),
    )

    def package(env: dict[str, str]) -> pulumi.Output[pulumi.FileArchive]:
        env = dict(env)
        digest = trigger_digest(settings.work_dir, settings.triggers, env)
        state = decide(settings, digest)
        path = str(settings.artifact_path)

        if isinstance(state, Fresh):
            logger.info("Reusing artifact at %s", state.path)
            return command.stdout.apply(lambda _: pulumi.FileArchive(path))

        logger.info("Building %s in %s (%s)", unit_id, settings.work_dir, state.reason)
        result = local.run_output(
            command=build_script(settings, digest),
            dir=settings.work_dir,
            environment=stage_environment(settings, env),
        )
        return result.apply(lambda _: pulumi.FileArchive(path))

    return BuildDeclaration(command=command, archive=resolved.apply(package))
