"""Core data types shared by the mapping, population and reporting stages."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel


class OperatorKind(str, Enum):
    ATTRIBUTE = "attribute"
    ASSOCIATION = "association"


@dataclass(frozen=True)
class OperatorDescriptor:
    """One settable path on a target class.

    ``accepts`` and ``setter`` are resolved once when the registry builds the
    descriptor; ``assign`` is the only place they are invoked.
    """
    name: str
    kind: OperatorKind
    is_collection: bool = False
    related_class: Optional[type] = None
    default_lookup_key: Optional[str] = None
    fixed_lookup_value: Optional[str] = None
    accepts: Callable[[Any], bool] = field(default=lambda value: True, compare=False, repr=False)
    setter: Optional[Callable[[Any, Any], None]] = field(default=None, compare=False, repr=False)

    @property
    def is_association(self) -> bool:
        return self.kind == OperatorKind.ASSOCIATION

    def assign(self, record: Any, value: Any) -> bool:
        """Assign ``value`` to ``record`` if this operator accepts it."""
        if not self.accepts(value):
            return False
        try:
            if self.setter is not None:
                self.setter(record, value)
            else:
                setattr(record, self.name, value)
        except (TypeError, ValueError):
            return False
        return True


@dataclass(frozen=True)
class HeaderMapping:
    """Result of reconciling one header against the registry."""
    header: str
    operator: Optional[OperatorDescriptor] = None

    @property
    def mapped(self) -> bool:
        return self.operator is not None


@dataclass
class MappingResult:
    """Ordered mappings plus the headers and operators that did not line up."""
    mappings: list[HeaderMapping] = field(default_factory=list)
    unmapped_headers: list[str] = field(default_factory=list)
    missing_operators: list[str] = field(default_factory=list)

    @property
    def operator_names(self) -> list[str]:
        return [m.operator.name for m in self.mappings if m.operator is not None]

    def for_header(self, header: str) -> Optional[HeaderMapping]:
        for mapping in self.mappings:
            if mapping.header == header:
                return mapping
        return None


@dataclass(frozen=True)
class AssociationLookupSpec:
    """Parsed form of one association cell segment."""
    lookup_key: str
    lookup_values: tuple[str, ...]


@dataclass
class RecordError:
    """An error attached to the record being populated."""
    row: int
    column: Optional[str]
    message: str

    def to_dict(self) -> dict:
        return {"row": self.row, "column": self.column, "message": self.message}


class LoadOptions(BaseModel):
    """Options recognised by a load run.

    Values may come from keyword arguments or from the ``LoadSession`` and
    loader-specific sections of a loader config file.
    """
    strict: bool = False
    mandatory: list[str] = []
    ignore: list[str] = []
    force_inclusion: list[str] = []
    include_all: bool = False
    abort_on_failure: bool = False
    dummy: bool = False
    verbose: bool = False
    reload: bool = False
    include_instance_methods: bool = False

    model_config = {"extra": "ignore"}


@dataclass
class LoadReport:
    """Summary of a load run."""
    run_id: str
    target: str
    status: str  # "completed" | "completed_with_errors"
    rows_processed: int = 0
    loaded: int = 0
    failed: int = 0
    unmapped_headers: list[str] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "target": self.target,
            "status": self.status,
            "rows_processed": self.rows_processed,
            "loaded": self.loaded,
            "failed": self.failed,
            "unmapped_headers": self.unmapped_headers,
            "errors": self.errors,
        }


# --- API response models ---


class ImportResponse(BaseModel):
    run_id: str
    target: str
    status: str
    rows_processed: int
    loaded: int
    failed: int
    unmapped_headers: list[str] = []
    errors: list[dict] = []
    message: str
