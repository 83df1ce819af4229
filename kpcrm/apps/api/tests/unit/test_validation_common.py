"""Tests for the shared constrained field types.

Strict types back create/update bodies, lax types back query-string search.
"""

import pytest
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from kpcrm_api.validation.common import (
    Currency,
    DateString,
    Email,
    Flag,
    PageLimit,
    Percentage,
    Phone,
    QueryCurrency,
    QueryFlag,
    QueryTextList,
    Text,
    Url,
    Uuid,
    clean_text,
    required_text,
)


def _message(type_, value) -> str:
    with pytest.raises(PydanticValidationError) as exc_info:
        TypeAdapter(type_).validate_python(value)
    return exc_info.value.errors()[0]["msg"]


@pytest.mark.parametrize(
    "type_,value,message",
    [
        (Uuid, "not-a-uuid", "Invalid UUID format"),
        (Email, "chef@", "Invalid email format"),
        (Phone, "call me maybe", "Invalid phone number format"),
        (Url, "kitchen pantry", "Invalid URL format"),
        (DateString, "2024-01-15", "Invalid ISO date format"),
        (DateString, "2024-13-45T10:00:00Z", "Invalid ISO date format"),
        (DateString, "2024-01-15T10:30:00", "Invalid ISO date format"),
        (Currency, -5, "Amount must be non-negative"),
        (Currency, 10.555, "Currency must have at most 2 decimal places"),
        (Percentage, 101, "Percentage must be between 0 and 100"),
        (PageLimit, 0, "Must be a positive integer"),
        (PageLimit, 101, "Must be at most 100"),
        (required_text("City"), "", "City is required"),
        (required_text("City"), "   ", "City is required"),
    ],
)
def test_constraint_messages(type_, value, message):
    assert _message(type_, value) == message


@pytest.mark.parametrize(
    "type_,value",
    [
        (Uuid, "9b2f6c1e-3d4a-4f5b-8c7d-1e2f3a4b5c6d"),
        (Email, "buyer@acme-foods.com"),
        (Phone, "+1 (555) 123-4567"),
        (Url, "https://acme-foods.com/menu"),
        (DateString, "2024-01-15T10:30:00Z"),
        (DateString, "2024-01-15T10:30:00.123+02:00"),
        (Currency, 1299.99),
        (Currency, 0),
        (Percentage, 100),
        (PageLimit, 100),
    ],
)
def test_valid_values_pass_unchanged(type_, value):
    assert TypeAdapter(type_).validate_python(value) == value


def test_strict_types_do_not_coerce_strings():
    with pytest.raises(PydanticValidationError):
        TypeAdapter(Flag).validate_python("true")
    with pytest.raises(PydanticValidationError):
        TypeAdapter(Currency).validate_python("10.50")


def test_query_types_coerce_query_strings():
    assert TypeAdapter(QueryFlag).validate_python("true") is True
    assert TypeAdapter(QueryCurrency).validate_python("10.50") == 10.5
    assert TypeAdapter(PageLimit).validate_python("25") == 25


def test_query_text_list_accepts_csv_and_repeated_values():
    adapter = TypeAdapter(QueryTextList)
    assert adapter.validate_python("gluten, dairy,") == ["gluten", "dairy"]
    assert adapter.validate_python(["gluten", "nuts"]) == ["gluten", "nuts"]


def test_currency_rejects_non_finite_amounts():
    with pytest.raises(PydanticValidationError):
        TypeAdapter(Currency).validate_python(float("inf"))


@pytest.mark.parametrize(
    "raw,cleaned",
    [
        ("  Acme   Foods \n", "Acme Foods"),
        ("<b>Preferred</b>   supplier ", "Preferred supplier"),
        ("Salt & Pepper Bistro", "Salt & Pepper Bistro"),
        ("&lt;img src=x onerror=alert(1)&gt;Chef's table", "Chef's table"),
        ("<!-- note -->Walk-in only", "Walk-in only"),
    ],
)
def test_clean_text(raw, cleaned):
    assert clean_text(raw) == cleaned


def test_clean_text_never_leaves_markup():
    cleaned = clean_text("<script>alert(1)</script>  hi ")
    assert "<" not in cleaned
    assert cleaned.endswith("hi")


def test_text_type_cleans_but_stays_strict():
    assert TypeAdapter(Text).validate_python(" <i>Organic</i> ") == "Organic"
    with pytest.raises(PydanticValidationError):
        TypeAdapter(Text).validate_python(42)


def test_uncleaned_required_text_keeps_value_as_sent():
    assert TypeAdapter(required_text("Password", clean=False)).validate_python("  pass <word> ") == "  pass <word> "
