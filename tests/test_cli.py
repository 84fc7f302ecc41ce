"""
Tests for the apistack CLI.
"""

import json

from click.testing import CliRunner

from apistack.cli import cli


def _write_config(tmp_path, crate, stages):
    path = tmp_path / "apistack.yaml"
    lines = [
        "project: apistack",
        "stack: dev",
        "build:",
        f"  work_dir: {crate}",
        "  stages:",
    ]
    lines += [f"    - {json.dumps(stage)}" for stage in stages]
    path.write_text("\n".join(lines) + "\n")
    return path


class TestNamesCommand:
    def test_lists_names(self):
        """Test printing every derived resource name."""
        result = CliRunner().invoke(cli, ["names", "--project", "apistack", "--stack", "dev"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert "dev-apistack-api-lambda" in lines
        assert "dev-apistack-api-lambda-remote-url" in lines
        assert "dev-apistack-api-lambda-build" in lines
        assert "dev-apistack-transaction-search-access-policy" in lines

    def test_requires_names(self):
        """Test that a missing stack is a configuration error."""
        result = CliRunner().invoke(cli, ["names", "--project", "apistack"])

        assert result.exit_code == 2
        assert "invalid configuration" in result.output


class TestGraphCommand:
    def test_prints_levels(self):
        """Test printing the declaration levels."""
        result = CliRunner().invoke(cli, ["graph", "-p", "apistack", "-s", "dev"])

        assert result.exit_code == 0
        first = result.output.splitlines()[0]
        assert first.startswith("1. ")
        assert "stack-reference" in first
        assert "api-lambda/url" in result.output.splitlines()[-1]


class TestPolicyCommand:
    def test_prints_policy(self):
        """Test printing the transaction search policy."""
        result = CliRunner().invoke(
            cli, ["policy", "--account-id", "123456789012", "--region", "ap-northeast-1"]
        )

        assert result.exit_code == 0
        document = json.loads(result.output)
        assert document["Statement"][0]["Condition"]["StringEquals"] == {
            "aws:SourceAccount": "123456789012"
        }


class TestBuildCommand:
    def test_build_then_fresh(self, tmp_path, crate):
        """Test that the second build reuses the artifact."""
        config = _write_config(
            tmp_path, crate, ['mkdir -p "$ARTIFACT_DIR"', 'printf x > "$ARTIFACT_DIR/bootstrap"']
        )
        runner = CliRunner()

        first = runner.invoke(cli, ["build", "--config", str(config)])
        second = runner.invoke(cli, ["build", "--config", str(config)])
        forced = runner.invoke(cli, ["build", "--config", str(config), "--force"])

        assert first.exit_code == 0
        assert "Artifact built" in first.output
        assert "Artifact fresh" in second.output
        assert "Artifact built" in forced.output

    def test_env_bindings(self, tmp_path, crate):
        """Test that --env bindings reach the stages."""
        config = _write_config(
            tmp_path,
            crate,
            [
                'mkdir -p "$ARTIFACT_DIR"',
                'printf x > "$ARTIFACT_DIR/bootstrap"',
                'printf "$REMOTE_ENDPOINT" > "$ARTIFACT_DIR/endpoint"',
            ],
        )

        result = CliRunner().invoke(
            cli,
            ["build", "--config", str(config), "-u", "api-lambda", "-e", "REMOTE_ENDPOINT=https://example.com"],
        )

        assert result.exit_code == 0
        assert (crate / "bin" / "api-lambda" / "endpoint").read_text() == "https://example.com"

    def test_bad_env_binding(self, tmp_path, crate):
        """Test that a binding without '=' is rejected."""
        config = _write_config(tmp_path, crate, ['mkdir -p "$ARTIFACT_DIR"'])

        result = CliRunner().invoke(cli, ["build", "--config", str(config), "-e", "NOPE"])

        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output

    def test_failing_build_exits_with_stage_code(self, tmp_path, crate):
        """Test that a failed stage is reported with its exit code."""
        config = _write_config(tmp_path, crate, ["exit 4"])

        result = CliRunner().invoke(cli, ["build", "--config", str(config)])

        assert result.exit_code == 4
        assert "Build failed" in result.output

    def test_units_build_separately(self, tmp_path, crate):
        """Test that each unit gets its own artifact directory."""
        config = _write_config(
            tmp_path, crate, ['mkdir -p "$ARTIFACT_DIR"', 'printf x > "$ARTIFACT_DIR/bootstrap"']
        )
        runner = CliRunner()

        remote = runner.invoke(cli, ["build", "--config", str(config)])
        api = runner.invoke(cli, ["build", "--config", str(config), "--unit", "api-lambda"])
        again = runner.invoke(cli, ["build", "--config", str(config)])

        assert "Artifact built" in remote.output
        assert "Artifact built" in api.output
        assert "Artifact fresh" in again.output
        assert (crate / "bin" / "api-lambda-remote" / "bootstrap").is_file()
        assert (crate / "bin" / "api-lambda" / "bootstrap").is_file()

    def test_unknown_unit(self, tmp_path, crate):
        """Test that only declared units can be built."""
        config = _write_config(tmp_path, crate, ['mkdir -p "$ARTIFACT_DIR"'])

        result = CliRunner().invoke(cli, ["build", "--config", str(config), "--unit", "nope"])

        assert result.exit_code == 2
