"""Unit tests for the error taxonomy."""
import pytest

from digitscan.core.exceptions import (
    ErrorKind, RecognitionError, ServiceError, ValidationError,
)


class TestErrorKind:

    @pytest.mark.parametrize("kind", [ErrorKind.TIMEOUT, ErrorKind.SERVICE_FAILURE])
    def test_provider_side_failures_are_retryable(self, kind):
        assert kind.retryable

    @pytest.mark.parametrize("kind", [
        ErrorKind.AUTH_FAILURE, ErrorKind.EMPTY_FILE, ErrorKind.UNSUPPORTED_TYPE,
        ErrorKind.TOO_LARGE, ErrorKind.PREPROCESSING_FAILED,
    ])
    def test_other_failures_are_not_retryable(self, kind):
        assert not kind.retryable

    def test_every_kind_has_a_message(self):
        for kind in ErrorKind:
            assert kind.default_message


class TestRecognitionError:

    def test_defaults_to_generic_message(self):
        error = RecognitionError(ErrorKind.SERVICE_FAILURE, detail="500 INTERNAL: backend exploded")

        assert error.message == "Failed to process image."
        assert "exploded" not in str(error)
        assert error.detail == "500 INTERNAL: backend exploded"
        assert isinstance(error, ServiceError)

    def test_from_validation_keeps_kind_and_message(self):
        validation = ValidationError(ErrorKind.TOO_LARGE, "File is too large (6.00MB).")

        error = RecognitionError.from_validation(validation)

        assert error.kind is ErrorKind.TOO_LARGE
        assert error.message == "File is too large (6.00MB)."
        assert not error.retryable
