"""Reusable constrained field types shared by the entity schemas.

Two flavours exist for most scalars:
 - strict (create/update bodies): JSON types must already match, "10" is not 10
 - lax (search, built from query strings): "10" -> 10, "true" -> True

Custom messages are raised as PydanticCustomError so they surface verbatim in
the field error list.

Free text written by clients is cleaned before it is checked: markup is
stripped (bleach), runs of whitespace collapse to one space and the ends are
trimmed. Credentials are never cleaned.
"""

import html
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Optional

import bleach
from pydantic import (
    AfterValidator,
    AllowInfNan,
    AnyUrl,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Strict,
    TypeAdapter,
    ValidationError as PydanticValidationError,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")
ISO_DATETIME_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d{1,6})?)?(Z|[+-]\d{2}:\d{2})$"
)

MAX_PAGE_SIZE = 100

_url_adapter: TypeAdapter[AnyUrl] = TypeAdapter(AnyUrl)
_WHITESPACE_RUN = re.compile(r"\s+")


class SchemaModel(BaseModel):
    """Base for payload schemas: camelCase on the wire, unknown keys dropped."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ============================================================================
# Validators
# ============================================================================


def _check_uuid(value: str) -> str:
    if not UUID_PATTERN.match(value):
        raise PydanticCustomError("uuid_format", "Invalid UUID format")
    return value


def _check_email(value: str) -> str:
    if not EMAIL_PATTERN.match(value):
        raise PydanticCustomError("email_format", "Invalid email format")
    return value


def _check_phone(value: str) -> str:
    if not PHONE_PATTERN.match(value):
        raise PydanticCustomError("phone_format", "Invalid phone number format")
    return value


def _check_url(value: str) -> str:
    try:
        _url_adapter.validate_python(value)
    except PydanticValidationError:
        raise PydanticCustomError("url_format", "Invalid URL format") from None
    return value


def _check_datetime(value: str) -> str:
    if not ISO_DATETIME_PATTERN.match(value):
        raise PydanticCustomError("date_format", "Invalid ISO date format")
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise PydanticCustomError("date_format", "Invalid ISO date format") from None
    return value


def _check_currency(value: float) -> float:
    if value < 0:
        raise PydanticCustomError("currency_negative", "Amount must be non-negative")
    try:
        exponent = Decimal(str(value)).as_tuple().exponent
    except InvalidOperation:
        raise PydanticCustomError("currency_format", "Invalid amount") from None
    if isinstance(exponent, int) and exponent < -2:
        raise PydanticCustomError(
            "currency_precision", "Currency must have at most 2 decimal places"
        )
    return value


def _check_percentage(value: float) -> float:
    if not 0 <= value <= 100:
        raise PydanticCustomError("percentage_range", "Percentage must be between 0 and 100")
    return value


def _check_positive(value: int) -> int:
    if value <= 0:
        raise PydanticCustomError("positive_integer", "Must be a positive integer")
    return value


def _check_non_negative(value: int) -> int:
    if value < 0:
        raise PydanticCustomError("non_negative_integer", "Must be non-negative")
    return value


def _check_page_limit(value: int) -> int:
    if value > MAX_PAGE_SIZE:
        raise PydanticCustomError(
            "page_limit", "Must be at most {max_size}", {"max_size": MAX_PAGE_SIZE}
        )
    return value


def _check_positive_number(value: float) -> float:
    if value <= 0:
        raise PydanticCustomError("positive_number", "Must be a positive number")
    return value


def _check_non_negative_number(value: float) -> float:
    if value < 0:
        raise PydanticCustomError("non_negative_number", "Must be non-negative")
    return value


def clean_text(value: Any) -> Any:
    """Strip markup, collapse whitespace and trim. Non-strings pass through untouched."""
    if not isinstance(value, str):
        return value
    # decode entities to a fixed point so encoded tags are stripped as well
    decoded = html.unescape(value)
    while decoded != value:
        value, decoded = decoded, html.unescape(decoded)
    stripped = html.unescape(bleach.clean(value, tags=set(), attributes={}, strip=True, strip_comments=True))
    return _WHITESPACE_RUN.sub(" ", stripped).strip()


def _split_csv(value: Any) -> Any:
    """Query strings carry lists as "a,b" or repeated keys."""
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


def required_text(label: str, clean: bool = True) -> Any:
    """Strict non-empty string reporting "<label> is required" when empty.

    With clean=False (passwords) the value is checked exactly as sent.
    """

    def _check(value: str) -> str:
        if len(value) < 1:
            raise PydanticCustomError("required_text", "{label} is required", {"label": label})
        return value

    if clean:
        return Annotated[str, Strict(), BeforeValidator(clean_text), AfterValidator(_check)]
    return Annotated[str, Strict(), AfterValidator(_check)]


# ============================================================================
# Strict types (create / update bodies)
# ============================================================================

Text = Annotated[str, Strict(), BeforeValidator(clean_text)]
Secret = Annotated[str, Strict()]
Flag = Annotated[bool, Strict()]
Uuid = Annotated[str, Strict(), AfterValidator(_check_uuid)]
Email = Annotated[str, Strict(), AfterValidator(_check_email)]
Phone = Annotated[str, Strict(), AfterValidator(_check_phone)]
Url = Annotated[str, Strict(), AfterValidator(_check_url)]
DateString = Annotated[str, Strict(), AfterValidator(_check_datetime)]
Currency = Annotated[float, Strict(), AllowInfNan(False), AfterValidator(_check_currency)]
Percentage = Annotated[float, Strict(), AllowInfNan(False), AfterValidator(_check_percentage)]
PositiveInt = Annotated[int, Strict(), AfterValidator(_check_positive)]
NonNegativeInt = Annotated[int, Strict(), AfterValidator(_check_non_negative)]
PositiveNumber = Annotated[float, Strict(), AllowInfNan(False), AfterValidator(_check_positive_number)]
NonNegativeNumber = Annotated[
    float, Strict(), AllowInfNan(False), AfterValidator(_check_non_negative_number)
]
TextList = list[Text]
UrlList = list[Url]

# ============================================================================
# Lax types (search, query-string input)
# ============================================================================

QueryText = str
QueryFlag = bool
QueryUuid = Annotated[str, AfterValidator(_check_uuid)]
QueryDateString = Annotated[str, AfterValidator(_check_datetime)]
QueryCurrency = Annotated[float, AllowInfNan(False), AfterValidator(_check_currency)]
QueryTextList = Annotated[list[str], BeforeValidator(_split_csv)]
PageLimit = Annotated[int, AfterValidator(_check_positive), AfterValidator(_check_page_limit)]
PageOffset = Annotated[int, AfterValidator(_check_non_negative)]


# ============================================================================
# Nested objects
# ============================================================================


class Address(SchemaModel):
    street: required_text("Street")
    city: required_text("City")
    state: required_text("State")
    zip_code: required_text("ZIP code")
    country: required_text("Country") = "US"


class SearchParams(SchemaModel):
    """Pagination shared by every search schema; never clamped."""

    query: Optional[QueryText] = None
    limit: PageLimit = 10
    offset: PageOffset = 0

