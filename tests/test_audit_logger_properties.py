"""
Property-based tests for Audit Logger module.

Uses Hypothesis for property-based testing of output formats, level
filtering, sensitive data masking and error context.
"""

import json
from io import StringIO

import pytest
from hypothesis import given, settings, assume
from hypothesis import strategies as st

from dns_reconciler.audit_logger import AuditLogger
from dns_reconciler.enums import LogLevel


# Strategies for generating valid test data

@st.composite
def component_name_strategy(draw) -> str:
    """Generate valid component names."""
    return draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-"),
        min_size=1,
        max_size=50,
    ))


@st.composite
def message_strategy(draw) -> str:
    """Generate valid log messages."""
    return draw(st.text(
        alphabet=st.characters(
            whitelist_categories=('L', 'N', 'P', 'S', 'Z'),
            blacklist_characters='\x00\n\r',
        ),
        min_size=1,
        max_size=200,
    ))


SENSITIVE_PATTERNS = [
    'token', 'secret', 'password', 'api_key', 'hmac_secret',
    'auth', 'authorization', 'credential', 'private_key', 'access_token',
]


@st.composite
def non_sensitive_key_strategy(draw) -> str:
    """Generate keys that are NOT sensitive."""
    key = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz_"),
        min_size=1,
        max_size=20,
    ))
    for pattern in SENSITIVE_PATTERNS:
        assume(pattern not in key)
    return key


@st.composite
def sensitive_key_strategy(draw) -> str:
    """Generate keys that ARE sensitive."""
    base = draw(st.sampled_from(SENSITIVE_PATTERNS))
    prefix = draw(st.sampled_from(['', 'my_', 'user_', 'app_']))
    suffix = draw(st.sampled_from(['', '_value', '_data', '_1']))
    return f"{prefix}{base}{suffix}"


@st.composite
def simple_value_strategy(draw):
    """Generate simple JSON-serializable values."""
    return draw(st.one_of(
        st.text(min_size=0, max_size=50),
        st.integers(min_value=-1000, max_value=1000),
        st.booleans(),
        st.none(),
    ))


@st.composite
def non_sensitive_data_strategy(draw) -> dict:
    """Generate data dictionaries without sensitive keys."""
    return draw(st.dictionaries(
        non_sensitive_key_strategy(),
        simple_value_strategy(),
        max_size=5,
    ))


class TestOutputFormatProperty:
    """Entries are written as JSON lines, text lines, or both."""

    @given(
        component=component_name_strategy(),
        message=message_strategy(),
        data=non_sensitive_data_strategy(),
    )
    @settings(max_examples=100)
    def test_both_format_writes_json_and_text(
        self, component: str, message: str, data: dict
    ) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="both", output_stream=stream)

        entry = logger.log(LogLevel.INFO, component, message, data)

        lines = stream.getvalue().split("\n")[:-1]
        assert len(lines) == 2

        parsed = json.loads(lines[0])
        assert parsed["level"] == "info"
        assert parsed["component"] == component
        assert parsed["message"] == message
        assert parsed["data"] == data
        assert parsed["timestamp"] == entry.timestamp

        assert lines[0] == logger.get_json_output(entry)
        assert lines[1] == logger.get_text_output(entry)
        assert f"[{component}]" in lines[1]
        assert "INFO" in lines[1]

    @given(component=component_name_strategy(), message=message_strategy())
    @settings(max_examples=50)
    def test_json_only_format(self, component: str, message: str) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="json", output_stream=stream)

        logger.log(LogLevel.WARN, component, message)

        lines = stream.getvalue().split("\n")[:-1]
        assert len(lines) == 1
        assert json.loads(lines[0])["level"] == "warn"

    @given(component=component_name_strategy(), message=message_strategy())
    @settings(max_examples=50)
    def test_text_only_format(self, component: str, message: str) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="text", output_stream=stream)

        logger.log(LogLevel.ERROR, component, message)

        output = stream.getvalue()
        assert output.count("\n") == 1
        assert output.split(" ", 1)[1].startswith("ERROR")

    def test_invalid_format_rejected(self) -> None:
        with pytest.raises(ValueError):
            AuditLogger(output_format="xml")


class TestLevelFilteringProperty:
    """Entries below the minimum level are dropped."""

    @given(
        min_level=st.sampled_from(list(LogLevel)),
        level=st.sampled_from(list(LogLevel)),
    )
    @settings(max_examples=50)
    def test_entries_below_min_level_dropped(self, min_level: LogLevel, level: LogLevel) -> None:
        order = list(LogLevel)
        stream = StringIO()
        logger = AuditLogger(output_format="json", output_stream=stream, min_level=min_level)

        entry = logger.log(level, "Test", "message")

        if order.index(level) >= order.index(min_level):
            assert entry is not None
            assert len(logger.entries) == 1
        else:
            assert entry is None
            assert logger.entries == []
            assert stream.getvalue() == ""

    def test_from_level_name(self) -> None:
        logger = AuditLogger.from_level_name("WARN", output_stream=StringIO())
        assert logger.min_level == LogLevel.WARN
        assert logger.output_format == "text"

    def test_from_level_name_rejects_unknown(self) -> None:
        with pytest.raises(ValueError):
            AuditLogger.from_level_name("verbose")


class TestSensitiveDataMaskingProperty:
    """Secrets never reach the log output."""

    @given(
        key=sensitive_key_strategy(),
        value=st.text(min_size=8, max_size=40, alphabet="0123456789"),
    )
    @settings(max_examples=100)
    def test_sensitive_data_masked(self, key: str, value: str) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="both", output_stream=stream)

        entry = logger.log(LogLevel.INFO, "Config", "loaded", {key: value})

        assert entry.data[key] == AuditLogger.MASK_VALUE
        assert value not in stream.getvalue()

    @given(data=non_sensitive_data_strategy())
    @settings(max_examples=100)
    def test_non_sensitive_data_not_masked(self, data: dict) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        assert logger.mask_sensitive_data(data) == data

    @given(key=sensitive_key_strategy())
    @settings(max_examples=50)
    def test_nested_sensitive_data_masked(self, key: str) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        masked = logger.mask_sensitive_data({
            "persistence": {key: "s3cr3t-value", "state_file_path": "/tmp/state.json"},
            "items": [{key: "s3cr3t-value"}, "plain"],
        })

        assert masked["persistence"][key] == AuditLogger.MASK_VALUE
        assert masked["persistence"]["state_file_path"] == "/tmp/state.json"
        assert masked["items"][0][key] == AuditLogger.MASK_VALUE
        assert masked["items"][1] == "plain"


class TestErrorContextProperty:
    """Error entries carry the exception and request context."""

    @given(
        message=message_strategy(),
        status_code=st.sampled_from([400, 404, 500, 503]),
    )
    @settings(max_examples=50)
    def test_error_logs_include_error_context(self, message: str, status_code: int) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.log_error(
            "DoHClient",
            message,
            error=ConnectionError("connection refused"),
            request_url="https://cloudflare-dns.com/dns-query",
            response_status_code=status_code,
            additional_data={"domain": "example.com"},
        )

        assert entry.level == LogLevel.ERROR
        assert entry.data["error_message"] == "connection refused"
        assert entry.data["error_type"] == "ConnectionError"
        assert entry.data["request_url"] == "https://cloudflare-dns.com/dns-query"
        assert entry.data["response_status_code"] == status_code
        assert entry.data["domain"] == "example.com"

    def test_error_logs_with_minimal_context(self) -> None:
        logger = AuditLogger(output_format="text", output_stream=StringIO())

        entry = logger.log_error("Reconciler", "failed")

        assert entry.data == {}

    def test_clear_entries(self) -> None:
        logger = AuditLogger(output_format="text", output_stream=StringIO())
        logger.log(LogLevel.INFO, "Test", "one")
        logger.clear_entries()
        assert logger.entries == []
