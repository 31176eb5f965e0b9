import logging

from smartlocal.errors import ErrorCategory
from smartlocal.policy import FailurePolicy


def test_records_and_logs_by_scope(caplog):
    policy = FailurePolicy()
    with caplog.at_level(logging.WARNING, logger="smartlocal.policy"):
        record = policy.handle_error(ErrorCategory.LOCALE, "Failed locale fr.", details="boom", locale="fr")
        policy.handle_error(ErrorCategory.NODE, "Skipped node.", node_id="1:2")

    assert record.locale == "fr"
    assert [item.category for item in policy.records] == [ErrorCategory.LOCALE, ErrorCategory.NODE]
    assert policy.messages == ["Failed locale fr.", "Skipped node."]
    assert [entry.levelno for entry in caplog.records] == [logging.ERROR, logging.WARNING]
    assert "boom" in caplog.records[0].getMessage()
