"""
Validation of items materialized in object mode.

A validator is any callable taking the populated item. It returns nothing on
success and raises :class:`~cqlbatch.exceptions.ItemValidationError` for the
first violated constraint.
"""
import logging
from typing import Any, Protocol

import pydantic
from cqlbatch.adapters.structure import accessor_table
from cqlbatch.exceptions import ItemValidationError

logger = logging.getLogger(__name__)


class Validator(Protocol):
    """Callable checking the constraints of one item."""

    def __call__(self, item: Any) -> None: ...


def _validate_model(item: pydantic.BaseModel) -> None:
    try:
        type(item).model_validate(dict(vars(item)))
    except pydantic.ValidationError as e:
        error = e.errors()[0]
        field = '.'.join(str(part) for part in error.get('loc', ())) or None
        raise ItemValidationError(field, error.get('input'), error['msg']) from e


def default_validator(item: Any) -> None:
    """Validate an item against the constraints declared by its type.

    Pydantic models are re-validated as a whole, since fields set one at a
    time bypass model validation. For other types, every accessible field
    whose declared type does not admit None must hold a value.

    Args:
        item: Item populated from a row

    Raises
        ItemValidationError: describing the first violation
    """
    if isinstance(item, pydantic.BaseModel):
        _validate_model(item)
        return
    for name, accessor in accessor_table(type(item)).items():
        if accessor.nullable or accessor.python_type is None:
            continue
        value = accessor.getter(item)
        if value is None:
            raise ItemValidationError(name, value, 'Field may not be null')


__all__ = ['Validator', 'default_validator']
