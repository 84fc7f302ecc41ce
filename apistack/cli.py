"""
apistack CLI - inspect and build the stack outside of a Pulumi run.
"""

import json
import sys

import click
from pydantic import ValidationError

from apistack.build import build_environment, ensure_artifact
from apistack.config import DeploymentConfig
from apistack.errors import BuildError
from apistack.monitoring import transaction_search_policy
from apistack.program import API_UNIT, REMOTE_UNIT, build_graph, resource_names


def _load_config(config_file: str | None, project: str | None, stack: str | None) -> DeploymentConfig:
    try:
        if config_file:
            return DeploymentConfig.from_yaml(config_file, project=project, stack=stack)
        return DeploymentConfig(project=project or "", stack=stack or "")
    except ValidationError as e:
        click.echo(f"Error: invalid configuration\n{e}", err=True)
        sys.exit(2)


def _parse_env(pairs: tuple[str, ...]) -> dict[str, str]:
    env = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got '{pair}'", param_hint="--env")
        env[key] = value
    return env


config_options = [
    click.option("--config", "config_file", type=click.Path(exists=True), help="YAML configuration file"),
    click.option("--project", "-p", help="Project name"),
    click.option("--stack", "-s", help="Stack name"),
]


def with_config(f):
    for option in reversed(config_options):
        f = option(f)
    return f


@click.group()
@click.version_option(version="0.1.0")
def cli():
    """
    apistack - Lambda API stack for Pulumi.

    Run `pulumi up` to deploy; these commands help inspect and build locally.
    """
    pass


@cli.command()
@with_config
def names(config_file: str | None, project: str | None, stack: str | None):
    """
    Print every resource name the stack declares.

    Example:
        apistack names --project my-api --stack dev
    """
    config = _load_config(config_file, project, stack)
    for name in resource_names(config):
        click.echo(name)


@cli.command()
@with_config
def graph(config_file: str | None, project: str | None, stack: str | None):
    """
    Print the declaration order, one level per line.

    Declarations on the same line do not depend on each other.
    """
    config = _load_config(config_file, project, stack)
    declarations = build_graph(config, account_id="<account>", region="<region>")
    for i, level in enumerate(declarations.levels(), 1):
        click.echo(f"{i}. {', '.join(level)}")


@cli.command()
@with_config
@click.option(
    "--unit", "-u", type=click.Choice([REMOTE_UNIT, API_UNIT]), default=REMOTE_UNIT, show_default=True,
    help="Compute unit to build",
)
@click.option("--env", "-e", "env_pairs", multiple=True, help="Extra build binding KEY=VALUE")
@click.option("--force", is_flag=True, help="Rebuild even if the artifact is fresh")
def build(
    config_file: str | None,
    project: str | None,
    stack: str | None,
    unit: str,
    env_pairs: tuple[str, ...],
    force: bool,
):
    """
    Build the Lambda artifact, reusing it when the triggers are unchanged.

    Example:
        apistack build --project my-api --stack dev
        apistack build -p my-api -s dev -u api-lambda -e REMOTE_ENDPOINT=https://example.com
    """
    config = _load_config(config_file, project, stack)
    environment = build_environment(config, **_parse_env(env_pairs))

    try:
        result = ensure_artifact(config.build.for_unit(unit), environment, force=force)
    except BuildError as e:
        click.echo(f"✗ Build failed: {e}", err=True)
        sys.exit(e.returncode if e.returncode and e.returncode > 0 else 1)

    state = "built" if result.built else "fresh"
    click.echo(f"✓ Artifact {state}: {result.path}")
    click.echo(f"  Digest: {result.digest}")


@cli.command()
@click.option("--account-id", required=True, help="AWS account ID")
@click.option("--region", required=True, help="AWS region")
def policy(account_id: str, region: str):
    """
    Print the transaction search resource policy document.

    Example:
        apistack policy --account-id 123456789012 --region ap-northeast-1
    """
    click.echo(json.dumps(transaction_search_policy(account_id, region), indent=2))


if __name__ == "__main__":
    cli()
