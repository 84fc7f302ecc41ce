"""
Public invocation endpoint for a compute unit.
"""

from dataclasses import dataclass

import pulumi
import pulumi_aws as aws

from apistack.config import DeploymentConfig


def strip_trailing_slash(url: str) -> str:
    """Remove exactly one trailing slash, if there is one."""
    return url[:-1] if url.endswith("/") else url


@dataclass
class FunctionUrlDeclaration:
    resource: aws.lambda_.FunctionUrl
    url: pulumi.Output[str]
    """URL without its trailing slash, ready to be exported"""


def declare_function_url(
    config: DeploymentConfig,
    unit_id: str,
    function: aws.lambda_.Function,
) -> FunctionUrlDeclaration:
    """Expose a function over a buffered HTTPS function URL."""
    resource = aws.lambda_.FunctionUrl(
        f"{config.resource_name(unit_id)}-url",
        function_name=function.name,
        authorization_type=config.function.authorization_type,
        invoke_mode=config.function.invoke_mode,
    )
    return FunctionUrlDeclaration(
        resource=resource,
        url=resource.function_url.apply(strip_trailing_slash),
    )
