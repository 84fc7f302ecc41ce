"""
Cross-stack references.

Outputs of another stack are read-only and resolved by the engine. A
missing output is fatal: it is never replaced by a default value.
"""

from collections.abc import Mapping
from typing import Any

import pulumi

from apistack.config import DeploymentConfig
from apistack.errors import MissingStackOutputError

API_LAMBDA_ARN = "API_LAMBDA_ARN"
API_LAMBDA_REMOTE_FUNCTION_URL = "API_LAMBDA_REMOTE_FUNCTION_URL"


def stack_reference(config: DeploymentConfig) -> pulumi.StackReference:
    return pulumi.StackReference(config.reference_path)


def require_stack_output(outputs: Mapping[str, Any] | None, key: str, stack_name: str) -> Any:
    """
    Look up one output of a referenced stack.

    Raises:
        MissingStackOutputError: If the stack does not publish `key`
    """
    if not outputs or key not in outputs:
        raise MissingStackOutputError(key, stack_name)
    return outputs[key]


def stack_output(reference: pulumi.StackReference, key: str) -> pulumi.Output[Any]:
    """Output that resolves to `key` of the referenced stack, or fails."""
    return pulumi.Output.all(reference.name, reference.outputs).apply(
        lambda args: require_stack_output(args[1], key, args[0])
    )
