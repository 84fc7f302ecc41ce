"""
IAM identity for a compute unit.

Each unit gets its own role, trusted by the Lambda service only, with the
managed basic-execution policy and a custom policy that lets the OTel
collector layer ship spans to X-Ray.
"""

import json
from dataclasses import dataclass
from typing import Any

import pulumi_aws as aws

from apistack.config import DeploymentConfig
from apistack.logging_config import get_logger

logger = get_logger(__name__)

BASIC_EXECUTION_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"


def lambda_trust_policy() -> dict[str, Any]:
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Action": "sts:AssumeRole",
                "Effect": "Allow",
                "Principal": {"Service": "lambda.amazonaws.com"},
            }
        ],
    }


def xray_policy_document() -> dict[str, Any]:
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Action": [
                    "xray:PutTraceSegments",
                    "xray:PutSpans",
                    "xray:PutSpansForIndexing",
                ],
                "Effect": "Allow",
                "Resource": ["*"],
            }
        ],
    }


@dataclass
class RoleDeclaration:
    """The role of one compute unit and the policies attached to it."""

    role: aws.iam.Role
    xray_policy: aws.iam.Policy
    attachments: list[aws.iam.RolePolicyAttachment]


def declare_role(config: DeploymentConfig, unit_id: str) -> RoleDeclaration:
    """
    Declare the execution role of a compute unit.

    Args:
        config: Deployment configuration
        unit_id: Unit identifier, e.g. "api-lambda"

    Returns:
        RoleDeclaration holding the role, the X-Ray policy and both attachments
    """
    unit_name = config.resource_name(unit_id)
    role_name = f"{unit_name}-role"

    role = aws.iam.Role(
        role_name,
        name=role_name,
        assume_role_policy=json.dumps(lambda_trust_policy()),
        tags=config.tags(role_name),
    )

    basic_execution = aws.iam.RolePolicyAttachment(
        f"{unit_name}-basic-execution-policy-attachment",
        role=role.name,
        policy_arn=BASIC_EXECUTION_POLICY_ARN,
    )

    xray_policy = aws.iam.Policy(
        f"{unit_name}-xray-monitoring-policy",
        description="Policy for Lambda to access X-Ray",
        policy=json.dumps(xray_policy_document()),
    )

    xray_attachment = aws.iam.RolePolicyAttachment(
        f"{unit_name}-xray-monitoring-policy-attachment",
        role=role.name,
        policy_arn=xray_policy.arn,
    )

    logger.debug("Declared role %s", role_name)
    return RoleDeclaration(
        role=role,
        xray_policy=xray_policy,
        attachments=[basic_execution, xray_attachment],
    )
