import json
import logging
import math
import sys

import pytest

from stockcount.core.logging import JsonFormatter, setup_logging
from stockcount.services.errors import InvalidArgument
from stockcount.services.utils.paging import check_qty


def _record(msg: str, *args, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord("stockcount.stock", logging.INFO, __file__, 1, msg, args, exc_info)


def test_json_formatter_emits_one_json_object_per_record():
    line = JsonFormatter().format(_record("consume: item=%s qty=%s", 7, 2.5))

    assert "\n" not in line
    body = json.loads(line)
    assert body["level"] == "INFO"
    assert body["logger"] == "stockcount.stock"
    assert body["msg"] == "consume: item=7 qty=2.5"
    assert body["ts"]
    assert "exc_info" not in body


def test_json_formatter_keeps_exception_text():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        rec = _record("failed", exc_info=sys.exc_info())

    body = json.loads(JsonFormatter().format(rec))
    assert "RuntimeError: boom" in body["exc_info"]


def test_setup_logging_switches_formatter():
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    try:
        setup_logging("info", json=True)
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

        setup_logging("info", json=False)
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
        for h in saved[0]:
            root.addHandler(h)
        root.setLevel(saved[1])


@pytest.mark.parametrize("raw, expected", [(0, 0.0), (3, 3.0), ("2.5", 2.5)])
def test_check_qty_accepts_finite_non_negative(raw, expected):
    assert check_qty(raw, field="qty") == expected


@pytest.mark.parametrize("raw", [None, -1, "abc", math.nan, math.inf, -math.inf, "nan"])
def test_check_qty_rejects(raw):
    with pytest.raises(InvalidArgument):
        check_qty(raw, field="qty")
