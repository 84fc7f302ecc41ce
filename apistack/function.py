"""
Compute unit registration.

A unit is one Lambda function pinned to an architecture and runtime image,
running the packaged artifact under its own role.
"""

import pulumi
import pulumi_aws as aws

from apistack.config import DeploymentConfig
from apistack.logging_config import get_logger

logger = get_logger(__name__)


def declare_function(
    config: DeploymentConfig,
    unit_id: str,
    role_arn: pulumi.Input[str],
    code: pulumi.Input[pulumi.Archive],
) -> aws.lambda_.Function:
    """
    Declare the Lambda function of a compute unit.

    Args:
        config: Deployment configuration
        unit_id: Unit identifier, e.g. "api-lambda"
        role_arn: Execution role ARN
        code: Packaged artifact; usually an Output that resolves after the build

    Returns:
        The Lambda function resource
    """
    settings = config.function
    function_name = config.resource_name(unit_id)

    function = aws.lambda_.Function(
        function_name,
        name=function_name,
        architectures=[settings.architecture],
        runtime=settings.runtime,
        handler=settings.handler,
        package_type=settings.package_type,
        code=code,
        role=role_arn,
        memory_size=settings.memory_size,
        timeout=settings.timeout,
        ephemeral_storage=aws.lambda_.FunctionEphemeralStorageArgs(
            size=settings.ephemeral_storage,
        ),
        environment=aws.lambda_.FunctionEnvironmentArgs(
            variables=dict(settings.environment),
        ),
        layers=list(settings.layers),
        logging_config=aws.lambda_.FunctionLoggingConfigArgs(
            application_log_level=settings.application_log_level,
            log_format=settings.log_format,
            log_group=f"/aws/lambda/{function_name}",
            system_log_level=settings.system_log_level,
        ),
        tags=config.tags(function_name),
    )

    logger.debug("Declared function %s", function_name)
    return function
