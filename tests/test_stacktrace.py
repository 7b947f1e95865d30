"""
Tests for exception normalization.
"""

import sys

from sentrylite.stacktrace import normalize_exception


def raise_value_error():
    raise ValueError("bad value")


def caught(func):
    try:
        func()
    except Exception:
        return sys.exc_info()


class TestNormalizeException:
    """Test every accepted input shape."""

    def test_exception_instance(self):
        exc_info = caught(raise_value_error)

        [record] = normalize_exception(exc_info[1])

        assert record.kind == "ValueError"
        assert record.message == "bad value"
        assert record.module == ""
        assert record.frames[-1].function == "raise_value_error"
        assert record.frames[-1].line is not None

    def test_exception_without_traceback(self):
        """Test that a never-raised exception is recorded with no frames."""
        [record] = normalize_exception(RuntimeError("not raised"))

        assert record.kind == "RuntimeError"
        assert record.frames == []

    def test_exc_info_triple(self):
        exc_info = caught(raise_value_error)

        [record] = normalize_exception(exc_info)

        assert record.kind == "ValueError"
        assert [f.function for f in record.frames] == ["caught", "raise_value_error"]

    def test_exception_traceback_pair(self):
        _, exc, tb = caught(raise_value_error)

        [record] = normalize_exception((exc, tb))

        assert record.message == "bad value"
        assert record.frames

    def test_current_exception(self):
        try:
            raise_value_error()
        except ValueError:
            records = normalize_exception()

        assert [r.kind for r in records] == ["ValueError"]

    def test_no_current_exception(self):
        assert normalize_exception() == []

    def test_string(self):
        [record] = normalize_exception("something went wrong")

        assert record.kind == "Error"
        assert record.message == "something went wrong"
        assert record.frames == []

    def test_list_of_errors(self):
        records = normalize_exception([ValueError("a"), "b", KeyError("c")])

        assert [r.kind for r in records] == ["ValueError", "Error", "KeyError"]

    def test_unusable_input(self):
        assert normalize_exception(42) == []
        assert normalize_exception(object()) == []

    def test_module_of_custom_exception(self):
        class PaymentError(Exception):
            pass

        [record] = normalize_exception(PaymentError("declined"))

        assert record.module == __name__
        assert record.kind.endswith("PaymentError")


class TestExceptionChain:
    """Test chained exceptions."""

    def test_cause_comes_first(self):
        try:
            try:
                raise KeyError("root cause")
            except KeyError as e:
                raise RuntimeError("wrapped") from e
        except RuntimeError as e:
            records = normalize_exception(e)

        assert [r.kind for r in records] == ["KeyError", "RuntimeError"]

    def test_implicit_context(self):
        try:
            try:
                raise KeyError("first")
            except KeyError:
                raise ValueError("during handling")
        except ValueError as e:
            records = normalize_exception(e)

        assert [r.kind for r in records] == ["KeyError", "ValueError"]

    def test_suppressed_context(self):
        try:
            try:
                raise KeyError("hidden")
            except KeyError:
                raise ValueError("clean") from None
        except ValueError as e:
            records = normalize_exception(e)

        assert [r.kind for r in records] == ["ValueError"]

    def test_cycle_terminates(self):
        first = ValueError("first")
        second = ValueError("second")
        first.__cause__ = second
        second.__cause__ = first

        records = normalize_exception(first)

        assert [r.message for r in records] == ["second", "first"]


class TestLevel:
    """Test level coercion."""

    def test_names_and_aliases(self):
        from sentrylite.types import Level

        assert Level.coerce("warning") is Level.WARNING
        assert Level.coerce("WARN") is Level.WARNING
        assert Level.coerce("critical") is Level.FATAL
        assert Level.coerce(Level.DEBUG) is Level.DEBUG

    def test_logging_numbers(self):
        import logging

        from sentrylite.types import Level

        assert Level.coerce(logging.DEBUG) is Level.DEBUG
        assert Level.coerce(logging.INFO) is Level.INFO
        assert Level.coerce(logging.WARNING) is Level.WARNING
        assert Level.coerce(logging.ERROR) is Level.ERROR
        assert Level.coerce(logging.CRITICAL) is Level.FATAL

    def test_unknown_falls_back_to_info(self):
        from sentrylite.types import Level

        assert Level.coerce("verbose") is Level.INFO

    def test_unknown_logs_at_debug(self):
        from structlog.testing import capture_logs

        from sentrylite.types import Level

        with capture_logs() as logs:
            Level.coerce("verbose")

        assert [entry["log_level"] for entry in logs] == ["debug"]
