"""Operator Registry — discovers the settable operators of a SQLAlchemy model.

Column attributes become Attribute operators and relationships become
Association operators. Each descriptor carries its acceptance check and
setter, built once here, so population never re-resolves operators by name.
"""

import importlib
import logging
import re
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy import UniqueConstraint
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import object_session

from modelshift.core.models import OperatorDescriptor, OperatorKind

logger = logging.getLogger(__name__)


def normalize_name(name: Any) -> str:
    """Normalize a header or operator name for matching.

    "  Item Code " -> "item_code", "unit-price" -> "unit_price"
    """
    return re.sub(r"[\s\-]+", "_", str(name).strip().lower())


def class_from_string(name: str) -> Optional[type]:
    """Resolve a dotted class path such as "shop.models.Product".

    Returns None if the module or class cannot be found.
    """
    module_name, _, class_name = name.strip().rpartition(".")
    if not module_name or not class_name:
        return None
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return None
    klass = getattr(module, class_name, None)
    return klass if isinstance(klass, type) else None


def _column_accepts(column) -> Callable[[Any], bool]:
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        python_type = None
    nullable = bool(column.nullable)

    def accepts(value: Any) -> bool:
        if value is None:
            return nullable
        if python_type is None:
            return True
        if isinstance(value, bool):
            return python_type is bool
        if python_type in (float, Decimal):
            return isinstance(value, (int, float, Decimal))
        return isinstance(value, python_type)

    return accepts


def _single_accepts(related: type, nullable: bool) -> Callable[[Any], bool]:
    def accepts(value: Any) -> bool:
        if value is None:
            return nullable
        if isinstance(value, (list, tuple)):
            return len(value) == 1 and isinstance(value[0], related)
        return isinstance(value, related)

    return accepts


def _single_setter(key: str) -> Callable[[Any, Any], None]:
    def setter(record: Any, value: Any) -> None:
        if isinstance(value, (list, tuple)):
            value = value[0]
        setattr(record, key, value)

    return setter


def _collection_accepts(related: type) -> Callable[[Any], bool]:
    def accepts(value: Any) -> bool:
        if isinstance(value, (list, tuple)):
            return len(value) > 0 and all(isinstance(v, related) for v in value)
        return isinstance(value, related)

    return accepts


def _collection_setter(key: str) -> Callable[[Any, Any], None]:
    def setter(record: Any, value: Any) -> None:
        session = object_session(record)
        if session is None:
            collection = getattr(record, key)
        else:
            # Loading the collection must not flush the half-populated row.
            with session.no_autoflush:
                collection = getattr(record, key)
        add = getattr(collection, "append", None) or collection.add
        items = value if isinstance(value, (list, tuple)) else [value]
        for item in items:
            if not any(existing is item for existing in collection):
                add(item)

    return setter


def _unique_lookup_key(related: type) -> Optional[str]:
    """First unique, non primary key, single column attribute of a class."""
    mapper = sa_inspect(related)
    unique_columns = {
        list(c.columns)[0].name
        for c in mapper.local_table.constraints
        if isinstance(c, UniqueConstraint) and len(c.columns) == 1
    }
    for attr in mapper.column_attrs:
        column = attr.columns[0]
        if column.primary_key:
            continue
        if column.unique or column.name in unique_columns:
            return attr.key
    return None


class OperatorRegistry:
    """Registry of operators for one target class.

    Built once per import session and passed explicitly to the mapper and
    resolver. ``reload()`` re-derives the operators from the model.
    """

    def __init__(
        self,
        model: type,
        include_instance_methods: bool = False,
        lookup_keys: Optional[dict[str, str]] = None,
    ):
        self.model = model
        self.include_instance_methods = include_instance_methods
        self.lookup_keys = dict(lookup_keys or {})
        self._operators: dict[str, OperatorDescriptor] = {}
        self._index: dict[str, OperatorDescriptor] = {}
        self.reload()

    def reload(self) -> None:
        """(Re)build the operator descriptors for the model."""
        try:
            mapper = sa_inspect(self.model)
        except NoInspectionAvailable:
            raise ValueError(f"{self.model!r} is not a mapped SQLAlchemy class")

        operators: dict[str, OperatorDescriptor] = {}

        for attr in mapper.column_attrs:
            operators[attr.key] = OperatorDescriptor(
                name=attr.key,
                kind=OperatorKind.ATTRIBUTE,
                accepts=_column_accepts(attr.columns[0]),
            )

        for rel in mapper.relationships:
            related = rel.mapper.class_
            lookup_key = self.lookup_keys.get(rel.key) or _unique_lookup_key(related)
            if rel.uselist:
                accepts = _collection_accepts(related)
                setter = _collection_setter(rel.key)
            else:
                nullable = all(c.nullable for c in rel.local_columns)
                accepts = _single_accepts(related, nullable)
                setter = _single_setter(rel.key)
            operators[rel.key] = OperatorDescriptor(
                name=rel.key,
                kind=OperatorKind.ASSOCIATION,
                is_collection=bool(rel.uselist),
                related_class=related,
                default_lookup_key=lookup_key,
                accepts=accepts,
                setter=setter,
            )

        if self.include_instance_methods:
            for klass in self.model.__mro__:
                for name, obj in vars(klass).items():
                    if name.startswith("_") or name in operators:
                        continue
                    if isinstance(obj, (property, hybrid_property)) and obj.fset is not None:
                        operators[name] = OperatorDescriptor(
                            name=name, kind=OperatorKind.ATTRIBUTE,
                        )

        self._operators = operators
        self._index = {normalize_name(name): d for name, d in operators.items()}
        logger.info(
            f"Registered {len(operators)} operators for {self.model.__name__}"
        )

    def operators(self, reload: bool = False) -> list[OperatorDescriptor]:
        if reload:
            self.reload()
        return list(self._operators.values())

    @property
    def operator_names(self) -> list[str]:
        return list(self._operators.keys())

    def get(self, name: str) -> Optional[OperatorDescriptor]:
        """Exact lookup by canonical operator name."""
        return self._operators.get(name)

    def find(self, name: Any) -> Optional[OperatorDescriptor]:
        """Lookup by free-text name, case and format normalized."""
        if name is None:
            return None
        return self._operators.get(name) or self._index.get(normalize_name(name))


def operators_for(model: type, include_instance_methods: bool = False) -> list[OperatorDescriptor]:
    """List the operators available on ``model``."""
    return OperatorRegistry(model, include_instance_methods).operators()
