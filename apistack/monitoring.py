"""
Transaction search: lets X-Ray write span data into CloudWatch Logs.

The policy is account-wide and independent of the compute units.
"""

import json
from typing import Any

import pulumi
import pulumi_aws as aws

from apistack.config import DeploymentConfig
from apistack.logging_config import get_logger

logger = get_logger(__name__)


def transaction_search_policy(account_id: str, region: str) -> dict[str, Any]:
    """
    Resource policy document for the transaction search log groups.

    Args:
        account_id: AWS account ID
        region: AWS region

    Returns:
        Policy document as a dict
    """
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Action": ["logs:PutLogEvents"],
                "Principal": {"Service": "xray.amazonaws.com"},
                "Effect": "Allow",
                "Resource": [
                    f"arn:aws:logs:{region}:{account_id}:log-group:aws/spans:*",
                    f"arn:aws:logs:{region}:{account_id}:log-group:/aws/application-signals/data:*",
                ],
                "Condition": {
                    "ArnLike": {"aws:SourceArn": f"arn:aws:xray:{region}:{account_id}:*"},
                    "StringEquals": {"aws:SourceAccount": account_id},
                },
            }
        ],
    }


def declare_transaction_search_policy(
    config: DeploymentConfig,
    account_id: pulumi.Input[str],
    region: pulumi.Input[str],
) -> aws.cloudwatch.LogResourcePolicy:
    policy_name = config.resource_name("transaction-search-access-policy")

    policy = aws.cloudwatch.LogResourcePolicy(
        policy_name,
        policy_name=policy_name,
        policy_document=pulumi.Output.all(account_id, region).apply(
            lambda args: json.dumps(transaction_search_policy(args[0], args[1]))
        ),
    )

    logger.debug("Declared log resource policy %s", policy_name)
    return policy
