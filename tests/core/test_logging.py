from __future__ import annotations

import json
import logging

from tenantgate.core.logging import (
    RequestContextFilter,
    _ContainerFormatter,
    _JsonFormatter,
    org_id_var,
    request_id_var,
    setup_logging,
)
from tenantgate.core.config import SETTINGS


def _record(level: int = logging.INFO, msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test",
        level=level,
        pathname="svc.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def teardown_module() -> None:
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_noisy_libraries() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_installs_context_filter_on_handler() -> None:
    setup_logging("info", json_format=True)
    (handler,) = logging.getLogger().handlers
    assert isinstance(handler.formatter, _JsonFormatter)
    assert any(isinstance(f, RequestContextFilter) for f in handler.filters)


def test_container_formatter_adds_location_only_at_warning() -> None:
    fmt = _ContainerFormatter()
    assert "[svc.py:42]" not in fmt.format(_record(logging.INFO))
    assert "[svc.py:42]" in fmt.format(_record(logging.WARNING, "denied"))


def test_json_formatter_lifts_context_fields() -> None:
    fmt = _JsonFormatter()
    record = _record(
        logging.WARNING,
        "Access denied",
        request_id="req-1",
        user_id="u-1",
        org_id="o-1",
        status_code=403,
    )
    entry = json.loads(fmt.format(record))
    assert entry["level"] == "WARNING"
    assert entry["message"] == "Access denied"
    assert entry["request_id"] == "req-1"
    assert entry["user_id"] == "u-1"
    assert entry["org_id"] == "o-1"
    assert entry["status_code"] == 403


def test_json_formatter_skips_unset_context() -> None:
    entry = json.loads(_JsonFormatter().format(_record(request_id="-", user_id="-")))
    assert "request_id" not in entry
    assert "user_id" not in entry


def test_context_filter_reads_context_vars() -> None:
    request_token = request_id_var.set("req-42")
    org_token = org_id_var.set("org-7")
    try:
        record = _record()
        assert RequestContextFilter().filter(record)
        assert record.request_id == "req-42"  # type: ignore[attr-defined]
        assert record.org_id == "org-7"  # type: ignore[attr-defined]
        assert record.user_id == "-"  # type: ignore[attr-defined]
    finally:
        request_id_var.reset(request_token)
        org_id_var.reset(org_token)


def test_context_filter_keeps_explicit_extra() -> None:
    record = _record(user_id="explicit")
    RequestContextFilter().filter(record)
    assert record.user_id == "explicit"  # type: ignore[attr-defined]
