import json
import logging

from buildingdesk.core.logging import RequestIdFilter, configure_logging


def test_request_id_filter_defaults_outside_requests():
    record = logging.LogRecord("buildingdesk", logging.INFO, __file__, 1, "hello", None, None)

    assert RequestIdFilter().filter(record) is True
    assert record.request_id == "-"


def test_json_logs_emit_one_object_per_line(capsys):
    configure_logging("INFO", json_logs=True)
    try:
        logging.getLogger("buildingdesk.test").info("Penalty applied")
        line = capsys.readouterr().err.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "Penalty applied"
        assert payload["levelname"] == "INFO"
        assert payload["request_id"] == "-"
    finally:
        configure_logging("INFO", json_logs=False)
