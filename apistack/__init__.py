"""
apistack: Pulumi program for a Rust API on AWS Lambda.

Declares two Lambda functions built from the `api` crate, their IAM roles,
public function URLs, and the CloudWatch Logs policy that enables X-Ray
transaction search.

Modules:
- iam: execution role, basic-execution and X-Ray policies per unit
- build: trigger-gated `cargo zigbuild` packaging
- function: the Lambda function of a unit
- endpoint: buffered function URL, exported without its trailing slash
- references: outputs read from another stack
- monitoring: transaction search log resource policy

Example (__main__.py of the Pulumi project):
    from apistack.program import main

    main()
"""

from apistack.config import BuildSettings, DeploymentConfig, FunctionSettings
from apistack.errors import BuildError, DeclarationError, GraphError, MissingStackOutputError
from apistack.graph import DeclarationGraph

__version__ = "0.1.0"
__all__ = [
    "BuildSettings",
    "DeploymentConfig",
    "FunctionSettings",
    "DeclarationGraph",
    "DeclarationError",
    "BuildError",
    "GraphError",
    "MissingStackOutputError",
]
