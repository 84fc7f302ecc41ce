"""
Shared fixtures and Pulumi mocks.

Mocks are installed at import time so every declaration created by a test
is registered against the mock monitor instead of a real engine. Inline
builds requested through `command:local:run` are executed for real in the
requested directory, so tests can count them.
"""

import os
import subprocess

import pytest
import pulumi

from apistack.config import BuildSettings, DeploymentConfig

ACCOUNT_ID = "123456789012"
REGION = "ap-northeast-1"

REFERENCED_OUTPUTS = {
    "API_LAMBDA_ARN": f"arn:aws:lambda:{REGION}:{ACCOUNT_ID}:function:dev-apistack-api-lambda",
    "API_LAMBDA_REMOTE_FUNCTION_URL": "https://remote.lambda-url.ap-northeast-1.on.aws",
}


class StackMocks(pulumi.runtime.Mocks):
    """Mock monitor returning plausible ARNs and URLs."""

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        outputs = dict(args.inputs)
        name = args.inputs.get("name", args.name)

        if args.typ == "pulumi:pulumi:StackReference":
            outputs["outputs"] = dict(REFERENCED_OUTPUTS)
        elif args.typ == "aws:iam/role:Role":
            outputs["arn"] = f"arn:aws:iam::{ACCOUNT_ID}:role/{name}"
        elif args.typ == "aws:iam/policy:Policy":
            outputs["arn"] = f"arn:aws:iam::{ACCOUNT_ID}:policy/{args.name}"
        elif args.typ == "aws:lambda/function:Function":
            outputs["arn"] = f"arn:aws:lambda:{REGION}:{ACCOUNT_ID}:function:{name}"
        elif args.typ == "aws:lambda/functionUrl:FunctionUrl":
            outputs["functionUrl"] = f"https://{args.name}.lambda-url.{REGION}.on.aws/"
        elif args.typ == "command:local:Command":
            outputs["stdout"] = ""
            outputs["stderr"] = ""

        return [f"{args.name}_id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        if args.token == "command:local:run":
            result = subprocess.run(
                ["/bin/sh", "-c", args.args["command"]],
                cwd=args.args.get("dir"),
                env={**os.environ, **(args.args.get("environment") or {})},
                capture_output=True,
                text=True,
            )
            if result.returncode != 0:
                raise Exception(f"command exited with code {result.returncode}: {result.stderr}")
            return {"command": args.args["command"], "stdout": result.stdout, "stderr": result.stderr}
        return {}


pulumi.runtime.set_mocks(StackMocks(), project="apistack", stack="dev", preview=False)


@pytest.fixture
def config():
    return DeploymentConfig(project="apistack", stack="dev")


@pytest.fixture
def referenced_outputs():
    """Outputs of the referenced stack, as the mocks will report them."""
    return REFERENCED_OUTPUTS


@pytest.fixture
def crate(tmp_path):
    """A minimal crate layout containing every default trigger."""
    work_dir = tmp_path / "api"
    (work_dir / "src").mkdir(parents=True)
    (work_dir / "aws").mkdir()
    (work_dir / "src" / "main.rs").write_text("fn main() {}\n")
    (work_dir / "Cargo.toml").write_text('[package]\nname = "api"\n')
    (work_dir / "build.rs").write_text("fn main() {}\n")
    (work_dir / "aws" / "collector-config.yaml").write_text("receivers: {}\n")
    return work_dir


@pytest.fixture
def build_settings(crate):
    """Build settings whose stages mimic the real pipeline and log each run."""
    return BuildSettings(
        work_dir=str(crate),
        stages=[
            "echo run >> ../build.log",
            'mkdir -p "$ARTIFACT_DIR"',
            'printf binary > "$ARTIFACT_DIR/bootstrap"',
            'cp ./aws/collector-config.yaml "$ARTIFACT_DIR/"',
        ],
    )


@pytest.fixture
def build_count(tmp_path):
    """Number of times the build stages have run."""
    def count() -> int:
        log = tmp_path / "build.log"
        return len(log.read_text().splitlines()) if log.exists() else 0
    return count
