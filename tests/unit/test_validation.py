"""
Tests for item validation.
"""
from dataclasses import dataclass

import pydantic
import pytest
from cqlbatch.exceptions import ItemValidationError
from cqlbatch.validation import default_validator


@dataclass
class Order:
    id: int = None
    note: str | None = None


class Position(pydantic.BaseModel):
    symbol: str
    quantity: pydantic.PositiveInt


def test_dataclass_requires_non_optional_fields():
    default_validator(Order(id=1))
    with pytest.raises(ItemValidationError) as exc_info:
        default_validator(Order(note='x'))
    assert exc_info.value.field == 'id'
    assert exc_info.value.value is None


def test_pydantic_model_is_revalidated():
    position = Position.model_construct(symbol='IBM')
    position.quantity = -5
    with pytest.raises(ItemValidationError) as exc_info:
        default_validator(position)
    assert exc_info.value.field == 'quantity'
    assert exc_info.value.value == -5


def test_pydantic_model_missing_field():
    with pytest.raises(ItemValidationError) as exc_info:
        default_validator(Position.model_construct(symbol='IBM'))
    assert exc_info.value.field == 'quantity'


def test_valid_pydantic_model():
    default_validator(Position(symbol='IBM', quantity=5))


def test_untyped_objects_pass():
    class Plain:
        pass

    item = Plain()
    item.anything = None
    default_validator(item)


if __name__ == '__main__':
    __import__('pytest').main([__file__])
