"""Unit tests for logging helpers."""

from utils import clear_correlation_id, get_correlation_id, set_correlation_id
from utils.logging import _add_system_context, _log4j_formatter


class TestLogging:
    """Test cases for correlation IDs and log formatting."""

    def test_correlation_id_lifecycle(self) -> None:
        assert set_correlation_id("req-1") == "req-1"
        assert get_correlation_id() == "req-1"

        clear_correlation_id()

        assert get_correlation_id() is None

    def test_generated_correlation_id(self) -> None:
        generated = set_correlation_id()

        assert generated
        assert get_correlation_id() == generated
        clear_correlation_id()

    def test_system_context_carries_correlation_id(self) -> None:
        set_correlation_id("req-2")
        try:
            event = _add_system_context(None, "info", {"event": "hello"})
        finally:
            clear_correlation_id()

        assert event["correlation_id"] == "req-2"
        assert "pid" in event

    def test_log4j_format(self) -> None:
        line = _log4j_formatter(
            None,
            "info",
            {"timestamp": "2024-06-20T12:00:00Z", "level": "info", "event": "Stream finished", "lines_relayed": 3},
        )

        assert line == '2024-06-20T12:00:00Z [info]: Stream finished {"lines_relayed":3}'
