"""Tests for the storage retry decorator."""

from __future__ import annotations

import warnings

import pytest

from sellerdesk.domain.errors import InvalidInputError, StorageError
from sellerdesk.resilience.retry import retry_on_storage_error


class TestRetryOnStorageError:
    def test_succeeds_after_transient_failures(self) -> None:
        calls = []

        @retry_on_storage_error("flaky", attempts=3, initial_wait=0, max_wait=0)
        def flaky() -> str:
            calls.append(1)
            if len(calls) < 3:
                raise StorageError("database is locked")
            return "done"

        assert flaky() == "done"
        assert len(calls) == 3

    def test_reraises_last_error_after_exhaustion(self) -> None:
        calls = []

        @retry_on_storage_error("down", attempts=2, initial_wait=0, max_wait=0)
        def down() -> None:
            calls.append(1)
            raise StorageError(f"attempt {len(calls)}")

        with pytest.raises(StorageError, match="attempt 2"):
            down()
        assert len(calls) == 2

    def test_non_storage_errors_not_retried(self) -> None:
        calls = []

        @retry_on_storage_error("bad_input", attempts=3, initial_wait=0, max_wait=0)
        def bad_input() -> None:
            calls.append(1)
            raise InvalidInputError("user_id is required")

        with pytest.raises(InvalidInputError):
            bad_input()
        assert len(calls) == 1

    def test_preserves_function_metadata(self) -> None:
        @retry_on_storage_error("named")
        def named() -> None:
            """Docstring."""

        assert named.__name__ == "named"
        assert named.__doc__ == "Docstring."

    def test_backoff_configuration_emits_no_deprecation_warning(self) -> None:
        calls = []

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)

            @retry_on_storage_error("quiet", attempts=2, initial_wait=0, max_wait=0)
            def quiet() -> str:
                calls.append(1)
                if len(calls) < 2:
                    raise StorageError("database is locked")
                return "ok"

            assert quiet() == "ok"

    def test_exhaustion_keeps_original_exception_object(self) -> None:
        error = StorageError("disk I/O error")

        @retry_on_storage_error("same_error", attempts=2, initial_wait=0, max_wait=0)
        def fails() -> None:
            raise error

        with pytest.raises(StorageError) as exc_info:
            fails()
        assert exc_info.value is error
