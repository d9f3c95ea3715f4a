"""Coercer — insistent assignment of cell values to operators.

Spreadsheet cells rarely arrive in the type an operator wants, so after a
direct attempt the value is retried through INSISTENT_CONVERSIONS in order:
string, integer, float, boolean. The first representation the operator
accepts wins.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple

from modelshift.core.errors import AssignmentFailure
from modelshift.core.models import OperatorDescriptor
from modelshift.core.value_pipeline import is_empty

logger = logging.getLogger(__name__)

TRUE_STRINGS = {"true", "t", "yes", "y", "1", "on"}
FALSE_STRINGS = {"false", "f", "no", "n", "0", "off"}


class Converted(NamedTuple):
    ok: bool
    value: Any = None


@dataclass(frozen=True)
class AssignmentResult:
    operator: str
    value: Any
    conversion: str  # "direct", a conversion name, or "skipped"


def to_string(value: Any) -> Converted:
    if value is None:
        return Converted(False)
    return Converted(True, str(value))


def to_integer(value: Any) -> Converted:
    if value is None or isinstance(value, bool):
        return Converted(False)
    if isinstance(value, int):
        return Converted(True, value)
    if isinstance(value, float):
        return Converted(value.is_integer(), int(value) if value.is_integer() else None)
    try:
        return Converted(True, int(str(value).strip()))
    except ValueError:
        return Converted(False)


def to_float(value: Any) -> Converted:
    """Finite floats only: "nan" and "inf" text is not a number here."""
    if value is None or isinstance(value, bool):
        return Converted(False)
    try:
        number = float(str(value).strip())
    except ValueError:
        return Converted(False)
    if not math.isfinite(number):
        return Converted(False)
    return Converted(True, number)


def to_boolean(value: Any) -> Converted:
    if isinstance(value, bool):
        return Converted(True, value)
    if value is None:
        return Converted(False)
    s = str(value).strip().lower()
    if s in TRUE_STRINGS:
        return Converted(True, True)
    if s in FALSE_STRINGS:
        return Converted(True, False)
    return Converted(False)


INSISTENT_CONVERSIONS: list[tuple[str, Callable[[Any], Converted]]] = [
    ("string", to_string),
    ("integer", to_integer),
    ("float", to_float),
    ("boolean", to_boolean),
]


def assign(record: Any, operator: OperatorDescriptor, value: Any) -> AssignmentResult:
    """Assign ``value`` to ``operator`` on ``record``, converting if needed.

    Raises AssignmentFailure when no representation is accepted and the
    value is not empty. An empty value that cannot be assigned is skipped.
    """
    if operator.assign(record, value):
        return AssignmentResult(operator.name, value, "direct")

    for name, convert in INSISTENT_CONVERSIONS:
        converted = convert(value)
        if not converted.ok:
            logger.debug(f"insistent_assignment: {name} conversion of {value!r} failed")
            continue
        if operator.assign(record, converted.value):
            return AssignmentResult(operator.name, converted.value, name)
        logger.debug(f"insistent_assignment: {operator.name} rejected {name} {converted.value!r}")

    if is_empty(value):
        return AssignmentResult(operator.name, value, "skipped")

    logger.warning(f"Failed to assign [{value!r}] to {operator.name}")
    raise AssignmentFailure(operator.name, value)
