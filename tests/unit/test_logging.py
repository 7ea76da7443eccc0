from __future__ import annotations

from reelhive.core.telemetry.logging import configure_logging, get_logger, log_context


def test_logger_emits_structured_json(capsys):
    configure_logging("INFO", json_logs=True)
    logger = get_logger("test.logger")

    logger.info("cache_evicted", removed=3, remaining=7)
    out = capsys.readouterr().out

    assert '"event": "cache_evicted"' in out
    assert '"removed": 3' in out
    assert '"level": "info"' in out
    assert '"timestamp"' in out


def test_log_level_filters_debug(capsys):
    configure_logging("INFO", json_logs=True)
    get_logger("test.logger").debug("health_probe", provider="runway")
    assert capsys.readouterr().out == ""


def test_log_context_binds_fields_and_skips_none(capsys):
    configure_logging("INFO", json_logs=True)
    logger = get_logger("reelhive.test")

    with log_context(user_id="u1", project_id=None):
        logger.info("provider_dispatch_ok", provider="runway")
    logger.info("after_context")
    lines = capsys.readouterr().out.strip().splitlines()

    assert '"user_id": "u1"' in lines[0]
    assert '"logger_name": "reelhive.test"' in lines[0]
    assert "project_id" not in lines[0]
    assert "user_id" not in lines[1]
