from cibulb.config import SETTINGS
from cibulb.metric import aggregate_status, set_aggregate_status


def test_set_aggregate_status_marks_only_active_value():
    choices = ["success", "pending", "failed"]

    set_aggregate_status("pending", choices)

    values = {
        choice: aggregate_status.labels(status=choice)._value.get()
        for choice in choices
    }
    assert values == {"success": 0, "pending": 1, "failed": 0}


def test_log_level_from_override_logging():
    assert SETTINGS.model_copy(update={"OVERRIDE_LOGGING": "debug"}).log_level == 10
    assert SETTINGS.model_copy(update={"OVERRIDE_LOGGING": "nope"}).log_level == 30
