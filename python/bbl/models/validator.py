"""
bbl/models/validator.py

Validates loosely-typed data (parsed JSON/YAML from child processes) against a
type using pydantic's TypeAdapter.
"""

from typing import Any, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")


def validate_type(obj: Any, expected_type: Type[T], what: str = "value") -> T:
    """
    Validate `obj` against `expected_type`.

    Args:
        obj (Any): The object to validate.
        expected_type (Type[T]): The target type.
        what (str): Label used in the error message.

    Returns:
        T: The validated object.

    Raises:
        ValueError: If validation fails.
    """
    try:
        return TypeAdapter(expected_type).validate_python(obj)
    except ValidationError as e:
        raise ValueError(f"invalid {what}: {e}") from e
