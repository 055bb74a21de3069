"""Log formatters render event extras."""

import json
import logging

from daer.core.logging import EventFormatter, JsonFormatter


def make_record(**extra):
    record = logging.LogRecord(
        "daer.core.worker", logging.INFO, __file__, 1, "task.start", None, None
    )
    record.__dict__.update(extra)
    return record


def test_json_formatter_merges_extras():
    line = JsonFormatter().format(make_record(task_id="t-1", task_type="outline"))
    payload = json.loads(line)
    assert payload["event"] == "task.start"
    assert payload["level"] == "INFO"
    assert payload["task_id"] == "t-1"
    assert payload["task_type"] == "outline"


def test_json_formatter_stringifies_unserializable_values():
    payload = json.loads(JsonFormatter().format(make_record(novel=object())))
    assert payload["novel"].startswith("<object object")


def test_event_formatter_appends_sorted_pairs():
    line = EventFormatter("%(message)s").format(make_record(task_type="content", task_id="t-2"))
    assert line == "task.start | task_id=t-2 task_type=content"


def test_event_formatter_without_extras_is_plain():
    assert EventFormatter("%(message)s").format(make_record()) == "task.start"
