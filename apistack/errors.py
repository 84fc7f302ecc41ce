"""
Exceptions raised while declaring the stack.

Nothing here is retried. Every error aborts the Pulumi program and is
reported by the engine as a failed deployment.
"""


class DeclarationError(Exception):
    """Base class for errors raised while declaring resources."""
    pass


class BuildError(DeclarationError):
    """Raised when the artifact build fails or a trigger input is missing."""

    def __init__(self, message: str, stage: str | None = None, returncode: int | None = None):
        super().__init__(message)
        self.stage = stage
        self.returncode = returncode


class MissingStackOutputError(DeclarationError, KeyError):
    """Raised when a referenced stack does not publish the requested output."""

    def __init__(self, key: str, stack_name: str):
        super().__init__(f"Stack '{stack_name}' has no output named '{key}'")
        self.key = key
        self.stack_name = stack_name

    def __str__(self) -> str:
        return self.args[0]


class GraphError(DeclarationError, ValueError):
    """Raised for unknown nodes, duplicate nodes or cycles in the declaration graph."""
    pass
