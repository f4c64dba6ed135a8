"""Mapping of pydantic validation failures onto engine errors."""

from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from communityops.domain.models.system_error import ValidationFailedError


def _first_error_message(exc: PydanticValidationError) -> tuple[str, str | None]:
    errors = exc.errors()
    if not errors:
        return "Invalid input", None
    first = errors[0]
    loc = first.get("loc") or ()
    field = ".".join(str(part) for part in loc) if loc else None
    message = str(first.get("msg", "Invalid input"))
    # pydantic prefixes messages raised from validators
    message = message.removeprefix("Value error, ")
    if first.get("type") == "missing" and field:
        message = f"{field.replace('_', ' ').capitalize()} is required"
    return message, field


def to_validation_failed(exc: PydanticValidationError) -> ValidationFailedError:
    """Map a pydantic ValidationError onto the engine's ValidationFailedError.

    The first error becomes the user-facing message; the full error list is
    kept as technical detail.
    """
    message, field = _first_error_message(exc)
    return ValidationFailedError(
        message,
        field=field,
        technical=str(exc),
        details={"errors": exc.errors(include_url=False, include_context=False)},
    )


def parse_model(model: type[BaseModel], data: dict[str, Any] | BaseModel | None) -> BaseModel:
    """Validate ``data`` against ``model``.

    Args:
        model: Pydantic model class to validate against.
        data: Raw mapping, an instance of another model, or None.

    Returns:
        Validated model instance.

    Raises:
        ValidationFailedError: If the data violates the model's constraints.
    """
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model.model_validate(data or {})
    except PydanticValidationError as e:
        raise to_validation_failed(e) from e
