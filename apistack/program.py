"""
The Pulumi program: wires every declaration into one graph.

Two compute units are declared. "api-lambda-remote" is self-contained;
"api-lambda" bakes the remote unit's endpoint and its own published ARN
into its build through a stack reference, so it can only be built once
those outputs exist.
"""

from collections.abc import Callable
from typing import Any

import pulumi

from apistack.build import build_environment, declare_build
from apistack.config import DeploymentConfig
from apistack.endpoint import declare_function_url
from apistack.function import declare_function
from apistack.graph import DeclarationGraph
from apistack.iam import declare_role
from apistack.monitoring import declare_transaction_search_policy
from apistack.references import (
    API_LAMBDA_ARN,
    API_LAMBDA_REMOTE_FUNCTION_URL,
    stack_output,
    stack_reference,
)

API_UNIT = "api-lambda"
REMOTE_UNIT = "api-lambda-remote"

STACK_REFERENCE = "stack-reference"
TRANSACTION_SEARCH_POLICY = "transaction-search-policy"


def _add_unit(
    graph: DeclarationGraph,
    config: DeploymentConfig,
    unit_id: str,
    environment: Callable[[dict[str, Any]], dict[str, pulumi.Input[str]]],
    extra_deps: list[str] | None = None,
) -> None:
    """Register role, build, function and URL nodes for one unit."""
    graph.add(f"{unit_id}/role", lambda deps: declare_role(config, unit_id))
    graph.add(
        f"{unit_id}/build",
        lambda deps: declare_build(config, unit_id, environment(deps)),
        depends_on=extra_deps,
    )
    graph.add(
        f"{unit_id}/function",
        lambda deps: declare_function(
            config,
            unit_id,
            role_arn=deps[f"{unit_id}/role"].role.arn,
            code=deps[f"{unit_id}/build"].archive,
        ),
        depends_on=[f"{unit_id}/role", f"{unit_id}/build"],
    )
    graph.add(
        f"{unit_id}/url",
        lambda deps: declare_function_url(config, unit_id, deps[f"{unit_id}/function"]),
        depends_on=[f"{unit_id}/function"],
    )


def build_graph(
    config: DeploymentConfig,
    account_id: pulumi.Input[str],
    region: pulumi.Input[str],
) -> DeclarationGraph:
    """
    Build the declaration graph for the stack.

    Args:
        config: Deployment configuration
        account_id: AWS account ID, usually from get_caller_identity
        region: AWS region, usually from get_region

    Returns:
        Graph ready for evaluate()
    """
    graph = DeclarationGraph()

    graph.add(STACK_REFERENCE, lambda deps: stack_reference(config))
    graph.add(
        TRANSACTION_SEARCH_POLICY,
        lambda deps: declare_transaction_search_policy(config, account_id, region),
    )

    _add_unit(graph, config, REMOTE_UNIT, lambda deps: build_environment(config))

    def api_environment(deps: dict[str, Any]) -> dict[str, pulumi.Input[str]]:
        reference = deps[STACK_REFERENCE]
        return build_environment(
            config,
            API_LAMBDA_ARN=stack_output(reference, API_LAMBDA_ARN),
            PROJECT_NAME=config.project,
            REMOTE_ENDPOINT=stack_output(reference, API_LAMBDA_REMOTE_FUNCTION_URL),
        )

    _add_unit(graph, config, API_UNIT, api_environment, extra_deps=[STACK_REFERENCE])

    return graph


def stack_outputs(results: dict[str, Any]) -> dict[str, pulumi.Output[Any]]:
    """Outputs published for other stacks (and for the next build of this one)."""
    return {
        "API_LAMBDA_FUNCTION_URL": results[f"{API_UNIT}/url"].url,
        "API_LAMBDA_ROLE_ARN": results[f"{API_UNIT}/role"].role.arn,
        "API_LAMBDA_ARN": results[f"{API_UNIT}/function"].arn,
        "API_LAMBDA_REMOTE_FUNCTION_URL": results[f"{REMOTE_UNIT}/url"].url,
        "API_LAMBDA_REMOTE_ROLE_ARN": results[f"{REMOTE_UNIT}/role"].role.arn,
    }


def main() -> None:
    import pulumi_aws as aws

    config = DeploymentConfig.from_pulumi()
    graph = build_graph(
        config,
        account_id=aws.get_caller_identity_output().account_id,
        region=aws.get_region_output().region,
    )
    results = graph.evaluate()

    for name, value in stack_outputs(results).items():
        pulumi.export(name, value)


def resource_names(config: DeploymentConfig) -> list[str]:
    """Every logical resource name the program declares, in declaration order."""
    names = []
    for unit_id in (REMOTE_UNIT, API_UNIT):
        unit_name = config.resource_name(unit_id)
        names += [
            f"{unit_name}-role",
            f"{unit_name}-basic-execution-policy-attachment",
            f"{unit_name}-xray-monitoring-policy",
            f"{unit_name}-xray-monitoring-policy-attachment",
            f"{unit_name}-build",
            unit_name,
            f"{unit_name}-url",
        ]
    names.append(config.resource_name("transaction-search-access-policy"))
    return names
