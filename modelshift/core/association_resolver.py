"""Association Resolver — turns association cells into related records.

Cell grammar (delimiters configurable in settings):

    cell         := segment ('|' segment)*
    segment      := [lookup_key ':'] value_list
    value_list   := value (',' value)*

    "size:large|colour:red,green,blue"
        -> find one Size where size == "large"
        -> find all Colour where colour in ("red", "green", "blue")

Each segment is looked up independently; misses become warnings so one
unknown key never aborts the row.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from modelshift.core.config import settings
from modelshift.core.errors import AssociationResolutionError
from modelshift.core.models import AssociationLookupSpec, OperatorDescriptor

logger = logging.getLogger(__name__)


class RelatedFinder(Protocol):
    def find_one(self, model: type, key: str, value: str) -> Optional[Any]: ...

    def find_all(self, model: type, key: str, values: list[str]) -> list[Any]: ...


class SqlAlchemyFinder:
    """Looks up related records through a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def _column(self, model: type, key: str):
        mapper = sa_inspect(model)
        if key not in mapper.column_attrs:
            raise AssociationResolutionError(
                f"Cannot find {model.__name__} by '{key}': no such column"
            )
        return getattr(model, key)

    def find_one(self, model: type, key: str, value: str) -> Optional[Any]:
        """Return the single match, or None when there are zero or several."""
        column = self._column(model, key)
        with self.session.no_autoflush:
            matches = self.session.query(model).filter(column == value).limit(2).all()
        if len(matches) > 1:
            logger.warning(f"Ambiguous lookup {model.__name__}.{key} == {value!r}")
            return None
        return matches[0] if matches else None

    def find_all(self, model: type, key: str, values: list[str]) -> list[Any]:
        column = self._column(model, key)
        with self.session.no_autoflush:
            return self.session.query(model).filter(column.in_(values)).all()


@dataclass
class ResolvedSegment:
    spec: AssociationLookupSpec
    found: Any  # a single record, or a list for multi-value segments


@dataclass
class Resolution:
    segments: list[ResolvedSegment] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def parse_segment(segment: str, operator: OperatorDescriptor) -> AssociationLookupSpec:
    """Parse "key:v1,v2" (or "v1,v2" with a default key) into a lookup spec."""
    key, delim, rest = segment.partition(settings.name_value_delim)
    if not delim:
        key, rest = operator.default_lookup_key, segment
    key = (key or "").strip()
    if not key:
        raise AssociationResolutionError(
            f"Cannot look up {operator.name} from '{segment}': "
            f"expected format key{settings.name_value_delim}value"
        )

    values = [v.strip() for v in rest.split(settings.multi_value_delim)]
    values = [v for v in values if v]
    if operator.fixed_lookup_value:
        values.append(operator.fixed_lookup_value)
    if not values:
        raise AssociationResolutionError(
            f"No lookup values for {operator.name} in '{segment}'"
        )
    return AssociationLookupSpec(lookup_key=key, lookup_values=tuple(values))


def parse_cell(value: Any, operator: OperatorDescriptor) -> list[AssociationLookupSpec]:
    segments = [s.strip() for s in str(value).split(settings.multi_assoc_delim)]
    return [parse_segment(s, operator) for s in segments if s]


class AssociationResolver:
    """Resolves association cells against related records via a finder."""

    def __init__(self, finder: RelatedFinder):
        self.finder = finder

    def resolve(self, operator: OperatorDescriptor, raw_value: Any) -> Resolution:
        if operator.related_class is None:
            raise AssociationResolutionError(f"{operator.name} is not an association")

        resolution = Resolution()
        related = operator.related_class

        for spec in parse_cell(raw_value, operator):
            values = list(spec.lookup_values)

            if len(values) == 1:
                found = self.finder.find_one(related, spec.lookup_key, values[0])
                if found is None:
                    resolution.warnings.append(
                        f"Association {operator.name} with key {values[0]!r} NOT found"
                    )
                    continue
                resolution.segments.append(ResolvedSegment(spec, found))
                continue

            found_all = self.finder.find_all(related, spec.lookup_key, values)
            found_keys = {str(getattr(f, spec.lookup_key)) for f in found_all}
            missing = [v for v in values if v not in found_keys]
            if missing:
                resolution.warnings.append(
                    f"Association {operator.name} with key(s) {missing} NOT found"
                )
            if not found_all:
                continue
            resolution.segments.append(ResolvedSegment(spec, found_all))

        for warning in resolution.warnings:
            logger.warning(warning)
        return resolution
