import pytest

from stockcount.models import Batch
from stockcount.services.errors import InvalidArgument
from stockcount.services.utils.order_by import OrderTerm, build_order_by, columns_of, parse_order_by


def test_parse_single_key_defaults_to_asc():
    assert parse_order_by("name") == [OrderTerm("name", "asc")]


def test_parse_mixed_list_keeps_first_occurrence():
    terms = parse_order_by(["qty", {"key": "received_at", "dir": "DESC"}, {"key": "qty", "dir": "desc"}])
    assert terms == [OrderTerm("qty", "asc"), OrderTerm("received_at", "desc")]


def test_parse_none_is_empty():
    assert parse_order_by(None) == []


def test_parse_accepts_direction_alias():
    assert parse_order_by({"key": "qty", "direction": "desc"}) == [OrderTerm("qty", "desc")]


@pytest.mark.parametrize(
    "bad",
    [
        {"key": "qty", "dir": "sideways"},
        {"dir": "asc"},
        "  ",
        [42],
    ],
)
def test_parse_rejects_malformed_terms(bad):
    with pytest.raises(InvalidArgument):
        parse_order_by(bad)


def test_build_rejects_unknown_column():
    with pytest.raises(InvalidArgument) as ei:
        build_order_by("colour", columns_of(Batch))
    assert "qty" in ei.value.context["allowed"]


def test_build_keeps_input_order():
    clauses = build_order_by([{"key": "status"}, {"key": "qty", "dir": "desc"}], columns_of(Batch))
    rendered = [str(c) for c in clauses]
    assert rendered == ["batches.status ASC", "batches.qty DESC"]
