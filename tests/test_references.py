"""
Tests for cross-stack output resolution.
"""

import pytest

from apistack.errors import DeclarationError, MissingStackOutputError
from apistack.references import API_LAMBDA_ARN, require_stack_output


class TestRequireStackOutput:
    """A missing output fails instead of defaulting."""

    def test_present_key(self):
        outputs = {API_LAMBDA_ARN: "arn:aws:lambda:ap-northeast-1:123456789012:function:f"}

        assert require_stack_output(outputs, API_LAMBDA_ARN, "org/p/dev") == outputs[API_LAMBDA_ARN]

    def test_missing_key(self):
        """Test that a missing key raises with the stack and key named."""
        with pytest.raises(MissingStackOutputError) as excinfo:
            require_stack_output({"OTHER": "x"}, API_LAMBDA_ARN, "org/p/dev")

        assert excinfo.value.key == API_LAMBDA_ARN
        assert excinfo.value.stack_name == "org/p/dev"
        assert "org/p/dev" in str(excinfo.value)

    @pytest.mark.parametrize("outputs", [None, {}])
    def test_stack_without_outputs(self, outputs):
        """Test that a stack with no outputs at all fails too."""
        with pytest.raises(MissingStackOutputError):
            require_stack_output(outputs, API_LAMBDA_ARN, "org/p/dev")

    def test_falsy_value_is_returned(self):
        """Test that an empty but present output is not treated as missing."""
        assert require_stack_output({API_LAMBDA_ARN: ""}, API_LAMBDA_ARN, "org/p/dev") == ""

    def test_error_hierarchy(self):
        """Test that the error is both a declaration error and a KeyError."""
        error = MissingStackOutputError(API_LAMBDA_ARN, "org/p/dev")

        assert isinstance(error, DeclarationError)
        assert isinstance(error, KeyError)
