"""Validate-then-map helpers shared by every DTO.

validate_dto() turns raw input into a DTO or raises errors.ValidationError
with every violation collected into a {field: [messages]} map. to_record()
maps a validated DTO onto persistence column names.
"""
import re
from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar, Dict, Optional, Type, TypeVar
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, EmailStr, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError

T = TypeVar("T", bound="RecordModel")

PHONE_PATTERN = re.compile(r"^[\+\-\(\)\s\d]+$")

_email = TypeAdapter(EmailStr)


class RecordModel(BaseModel):
    """Base DTO: snake_case fields map 1:1 onto columns unless aliased."""

    # field name -> column name, for the few fields stored under another name
    record_aliases: ClassVar[Dict[str, str]] = {}

    def to_record(self) -> Dict[str, Any]:
        values = self.model_dump(exclude_unset=True)
        return {self.record_aliases.get(k, k): v for k, v in values.items()}


def choice(values: tuple, message: str) -> AfterValidator:
    """Restrict an optional string to `values`; empty values pass."""
    def check(value):
        if value and value not in values:
            raise ValueError(message)
        return value
    return AfterValidator(check)


def phone(value: Optional[str]) -> Optional[str]:
    if value and not PHONE_PATTERN.match(value):
        raise ValueError("Invalid phone number format")
    return value


def website(value: Optional[str]) -> Optional[str]:
    if value:
        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("Invalid website URL")
    return value


Phone = Annotated[Optional[str], AfterValidator(phone)]
Website = Annotated[Optional[str], AfterValidator(website)]
Percent = Annotated[Optional[int], Field(ge=0, le=100)]
NonNegative = Annotated[Optional[float], Field(ge=0)]
Required = Annotated[str, Field(min_length=1)]


def is_email(value: str) -> bool:
    try:
        _email.validate_python(value)
    except PydanticValidationError:
        return False
    return True


def _as_utc(moment: datetime) -> datetime:
    # naive datetimes are read as UTC so they compare against aware ones
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def not_before(value, other, message: str):
    """Raise when both dates are set and `value` is earlier than `other`."""
    if value is not None and other is not None and _as_utc(value) < _as_utc(other):
        raise ValueError(message)
    return value


def error_map(exc: PydanticValidationError) -> Dict[str, list]:
    errors: Dict[str, list] = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "__root__"
        if err["type"] == "value_error" and "error" in err.get("ctx", {}):
            message = str(err["ctx"]["error"])
        else:
            message = err["msg"]
        errors.setdefault(field, []).append(message)
    return errors


def validate_dto(cls: Type[T], data: Any) -> T:
    """Build a DTO from raw input.

    Raises:
        ValidationError: one or more fields are invalid. `.errors` holds all
            of them, not only the first.
    """
    try:
        return cls.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(error_map(exc)) from None


def to_record(dto: RecordModel) -> Dict[str, Any]:
    return dto.to_record()
