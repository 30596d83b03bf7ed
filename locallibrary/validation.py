"""
Form sanitization and validation.

A Rule is an ordered chain of steps for one form field. Sanitizers
(trim, escape, iso_date) replace the value; validators (length,
alphanumeric, identifier, one_of, iso_date) record a FieldError when they
fail and let the chain carry on, so one field can report several problems.
validate() runs a list of rules over a submitted form, then hands the
sanitized values to a pydantic schema for typing and cross-field checks.

Field constraints live in the rules only. Lengths are measured before
escape() runs, so an escaped value may be longer than its limit.

Usage:
    GENRE_RULES = [
        Rule("name", "Genre name must contain at least 3 characters")
        .trim()
        .length(min=3)
        .escape(),
    ]
    submission = validate(form, GENRE_RULES, schemas.GenreCreate)
    if not submission.is_valid:
        ...re-render the form with submission.values and submission.errors
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from markupsafe import escape
from pydantic import BaseModel, TypeAdapter, ValidationError


ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")
ALPHANUMERIC_PATTERN = re.compile(r"^[A-Za-z0-9]+$")

_date_adapter = TypeAdapter(date)


def is_valid_id(value: Any) -> bool:
    """True when value is a well-formed record identifier."""
    return isinstance(value, str) and ID_PATTERN.match(value) is not None


def parse_date(value: Any) -> Optional[date]:
    """Parse a date the way pydantic does for a date field, or return None."""
    if value is None or value == "":
        return None
    try:
        return _date_adapter.validate_python(value)
    except ValidationError:
        return None


@dataclass
class FieldError:
    """One failed check: the form field, a readable message, the bad value."""

    param: str
    msg: str
    value: Any = ""


@dataclass
class Submission:
    values: Dict[str, Any] = field(default_factory=dict)
    errors: List[FieldError] = field(default_factory=list)
    data: Optional[BaseModel] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors


class Rule:
    """
    Sanitize/validate chain for a single form field.

    Args:
        param: Form field name
        message: Default message for validators without their own
        many: Apply the chain to every value of a repeated field
    """

    def __init__(self, param: str, message: str = "Invalid value", many: bool = False):
        self.param = param
        self.message = message
        self.many = many
        self.is_optional = False
        self.steps: List[Tuple[str, Callable[[Any], Any], Optional[str]]] = []

    def _check(self, predicate, message=None):
        self.steps.append(("check", predicate, message))
        return self

    def _sanitize(self, fn):
        self.steps.append(("sanitize", fn, None))
        return self

    def optional(self):
        """Skip the chain entirely when the submitted value is empty."""
        self.is_optional = True
        return self

    def trim(self):
        return self._sanitize(lambda value: value.strip())

    def escape(self):
        return self._sanitize(lambda value: str(escape(value)))

    def length(self, min: int = 0, max: Optional[int] = None, message=None):
        return self._check(
            lambda value: len(value) >= min and (max is None or len(value) <= max),
            message,
        )

    def alphanumeric(self, message=None):
        return self._check(
            lambda value: ALPHANUMERIC_PATTERN.match(value) is not None, message
        )

    def identifier(self, message=None):
        return self._check(is_valid_id, message)

    def one_of(self, choices, message=None):
        """Accept the members of choices; an Enum class contributes its values."""
        allowed = tuple(getattr(choice, "value", choice) for choice in choices)
        return self._check(lambda value: value in allowed, message)

    def iso_date(self, message=None):
        self._check(lambda value: parse_date(value) is not None, message)
        return self._sanitize(parse_date)

    def _apply_one(self, value: Any) -> Tuple[Any, List[FieldError]]:
        if value is None:
            value = ""
        if self.is_optional and not value:
            return None, []

        errors = []
        for kind, fn, message in self.steps:
            if kind == "sanitize":
                value = fn(value) if isinstance(value, str) else value
            elif not fn(value):
                errors.append(FieldError(self.param, message or self.message, value))
        return value, errors

    def apply(self, raw: Any) -> Tuple[Any, List[FieldError]]:
        if not self.many:
            return self._apply_one(raw)

        if raw is None:
            raw = []
        elif isinstance(raw, str):
            raw = [raw]

        values, errors = [], []
        for item in raw:
            value, item_errors = self._apply_one(item)
            values.append(value)
            errors.extend(item_errors)
        return values, errors


def _read(form, rule: Rule) -> Any:
    if rule.many and hasattr(form, "getlist"):
        return form.getlist(rule.param)
    return form.get(rule.param)


def errors_from_pydantic(exc: ValidationError, values: Dict[str, Any]) -> List[FieldError]:
    """Convert a pydantic ValidationError into FieldErrors."""
    errors = []
    for err in exc.errors():
        param = str(err["loc"][0]) if err["loc"] else ""
        if err["type"] == "value_error" and "error" in err.get("ctx", {}):
            msg = str(err["ctx"]["error"])
        else:
            msg = err["msg"]
        errors.append(FieldError(param, msg, values.get(param, "")))
    return errors


def validate(form, rules: List[Rule], schema=None) -> Submission:
    """
    Run every rule over the submitted form.

    Args:
        form: Submitted form data (starlette FormData or a plain mapping)
        rules: Field chains, applied in order
        schema: Optional pydantic model built from the sanitized values
            when the chains report no errors

    Returns:
        Submission with sanitized values, errors and, on success, the
        schema instance in data
    """
    submission = Submission()
    for rule in rules:
        value, errors = rule.apply(_read(form, rule))
        submission.values[rule.param] = value
        submission.errors.extend(errors)

    if submission.errors or schema is None:
        return submission

    try:
        submission.data = schema(**submission.values)
    except ValidationError as exc:
        submission.errors.extend(errors_from_pydantic(exc, submission.values))
    return submission
