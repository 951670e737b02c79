"""Tests for the engine tracer decorator."""

from recurrence_engines.tracer import TRACE_TYPE, compute_input_fingerprint, traced_engine
from recurrence_kernel.domain.calendar_date import CalendarDate


@traced_engine("doubler", "2.1", fingerprint_fields=("values", "factor"))
def _double(values, factor=2):
    return [v * factor for v in values]


class TestFingerprint:

    def test_deterministic(self):
        args = {"window": CalendarDate(2025, 1, 1), "ids": {"b", "a"}}
        first = compute_input_fingerprint(("window", "ids"), args)
        second = compute_input_fingerprint(("window", "ids"), dict(args))

        assert first == second
        assert len(first) == 16

    def test_set_order_irrelevant(self):
        a = compute_input_fingerprint(("ids",), {"ids": {"x", "y", "z"}})
        b = compute_input_fingerprint(("ids",), {"ids": {"z", "y", "x"}})
        assert a == b

    def test_missing_field_counts_as_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(
            ("a",), {"a": None}
        )

    def test_different_inputs_differ(self):
        assert compute_input_fingerprint(("a",), {"a": 1}) != compute_input_fingerprint(
            ("a",), {"a": 2}
        )


class TestTracedEngine:

    def test_result_passes_through(self):
        assert _double([1, 2], factor=3) == [3, 6]

    def test_wraps_preserves_name(self):
        assert _double.__name__ == "_double"

    def test_trace_record(self, captured_logs):
        _double([1, 2, 3])

        trace = [r for r in captured_logs() if r["message"] == TRACE_TYPE][-1]
        assert trace["trace_type"] == TRACE_TYPE
        assert trace["engine_name"] == "doubler"
        assert trace["engine_version"] == "2.1"
        assert trace["result_size"] == 3
        assert trace["function"] == "_double"

    def test_positional_and_keyword_calls_fingerprint_alike(self, captured_logs):
        _double([1], 2)
        _double(values=[1], factor=2)

        traces = [r for r in captured_logs() if r["message"] == TRACE_TYPE]
        assert traces[-1]["input_fingerprint"] == traces[-2]["input_fingerprint"]
