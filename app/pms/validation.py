"""
Request DTO validation.

Every inbound JSON body (or query string) is decoded into a pydantic model
before the handler runs. Unknown fields are rejected, and every failing
field is reported in one 422 response; the handler never sees partial input.

Free-text fields use `SanitizedStr` / `RichTextStr`: the sanitizer runs as a
before-validator, so the string type check sees the sanitized value.
Non-strings are passed through untouched and rejected by the type check.
"""
from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Annotated, Any, TypeVar

from flask import request
from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from app.pms.errors import ValidationFailed
from app.pms.sanitize import sanitize_input, sanitize_rich_text

D = TypeVar("D", bound="Dto")


def _sanitize_plain(value: Any) -> Any:
    return sanitize_input(value) if isinstance(value, str) else value


def _sanitize_rich(value: Any) -> Any:
    return sanitize_rich_text(value) if isinstance(value, str) else value


SanitizedStr = Annotated[str, BeforeValidator(_sanitize_plain)]
RichTextStr = Annotated[str, BeforeValidator(_sanitize_rich)]


class Dto(BaseModel):
    """Base for request DTOs: camelCase on the wire, unknown fields forbidden."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
    )

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually sent (snake_case keys)."""
        return self.model_dump(exclude_unset=True)


class QueryDto(Dto):
    """Query-string DTOs: strings in, coerced by the field types."""


def format_errors(exc: ValidationError) -> list[dict[str, str]]:
    errors = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ())]
        errors.append(
            {
                "field": ".".join(loc) if loc else "body",
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type", "value_error"),
            }
        )
    return errors


def parse_dto(dto_cls: type[D], data: Any) -> D:
    """Validate `data` against `dto_cls`, raising ValidationFailed with every field error."""
    if not isinstance(data, dict):
        raise ValidationFailed(
            "Request validation failed",
            errors=[{"field": "body", "message": "Expected a JSON object", "type": "dict_type"}],
        )
    try:
        return dto_cls.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed("Request validation failed", errors=format_errors(e)) from e


def validate_json(dto_cls: type[Dto]) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decode the JSON body into `dto_cls` and pass it to the view as `body=`."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            data = request.get_json(silent=True)
            if data is None:
                data = {}
            kwargs["body"] = parse_dto(dto_cls, data)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def validate_query(dto_cls: type[QueryDto]) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decode the query string into `dto_cls` and pass it to the view as `query=`."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            kwargs["query"] = parse_dto(dto_cls, request.args.to_dict())
            return fn(*args, **kwargs)

        return wrapped

    return decorator
