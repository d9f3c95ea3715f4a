"""Load Session — populates and saves one target record per data row.

Flow for a run:
1. Map the header row to operators (mapping errors abort the run)
2. For each data row: reset the record, open the row's SAVEPOINT,
   then for each mapped cell prepare the value (override/default/prefix/
   postfix) and assign it, resolving association cells against related records
3. Apply defaults for operators with no column, then save the record
4. Commit (or roll back for a dummy run) and report loaded/failed counts

Per-cell problems are attached to the record's error list and the row
carries on; a failed save rolls the whole row back, marks the record failed and only
stops the run when abort_on_failure is set. Any other error rolls back the
run and propagates.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.orm import Session

from modelshift.core import coercer
from modelshift.core.association_resolver import AssociationResolver, RelatedFinder, SqlAlchemyFinder
from modelshift.core.errors import AssignmentFailure, AssociationResolutionError, PersistenceFailure
from modelshift.core.header_mapper import map_headers, match_header
from modelshift.core.id_gen import generate_id
from modelshift.core.loader_config import read_config_file, resolve_config
from modelshift.core.models import (
    LoadOptions,
    LoadReport,
    MappingResult,
    OperatorDescriptor,
    RecordError,
)
from modelshift.core.operator_registry import OperatorRegistry
from modelshift.core.persistence import RecordStore
from modelshift.core.row_sources import RowSource, iter_rows, open_row_source
from modelshift.core.value_pipeline import ValuePipeline, is_empty

logger = logging.getLogger(__name__)

CELL_ERRORS = (AssignmentFailure, AssociationResolutionError)


def _contains(records: list, record: Any) -> bool:
    return any(r is record for r in records)


def _remove(records: list, record: Any) -> None:
    records[:] = [r for r in records if r is not record]


class LoadSession:
    """State for one import run against one target class.

    Not safe for concurrent use: run one session per worker.
    """

    def __init__(
        self,
        model: type,
        session: Optional[Session] = None,
        *,
        options: Optional[LoadOptions] = None,
        registry: Optional[OperatorRegistry] = None,
        store: Optional[RecordStore] = None,
        finder: Optional[RelatedFinder] = None,
        record: Any = None,
        **option_overrides: Any,
    ):
        self.model = model
        self.options = options or LoadOptions()
        if option_overrides:
            self.options = LoadOptions(**{**self.options.model_dump(), **option_overrides})

        if registry is None:
            registry = OperatorRegistry(
                model, include_instance_methods=self.options.include_instance_methods,
            )
        elif self.options.reload:
            registry.reload()
        self.registry = registry

        if (store is None or finder is None) and session is None:
            raise ValueError("A SQLAlchemy session is required unless store and finder are given")
        self.store = store or RecordStore(session)
        self.resolver = AssociationResolver(finder or SqlAlchemyFinder(session))
        self.pipeline = ValuePipeline()

        self.run_id = generate_id()
        self.headers: list[str] = []
        self.mapping = MappingResult()

        self.loaded_records: list[Any] = []
        self.failed_records: list[Any] = []
        self.errors: list[RecordError] = []
        self.record_errors: list[RecordError] = []
        self.rows_processed = 0
        self.row_number = 0

        self.record: Any = None
        self.current_value: Any = None
        self.current_operator: Optional[OperatorDescriptor] = None
        self.reset(record)

    # ── Configuration ──────────────────────────────────────────────────

    @property
    def abort_on_failure(self) -> bool:
        return self.options.abort_on_failure

    @property
    def verbose(self) -> bool:
        return self.options.verbose

    def configure_from(self, path: str | Path) -> None:
        """Merge defaults, overrides and options from a loader config file."""
        data = read_config_file(path)
        logger.info(f"Read loader config from {path}")

        config = resolve_config(data, self.model, type(self))
        self.pipeline.defaults.update(config.defaults)
        self.pipeline.overrides.update(config.overrides)
        if config.options:
            self.update_options(**config.options)
        logger.info(f"Loader options: {self.options.model_dump()}")

    def update_options(self, **changes: Any) -> None:
        """Merge option changes; rebuild the registry when discovery changes."""
        self.options = LoadOptions(**{**self.options.model_dump(), **changes})
        include = self.options.include_instance_methods
        if include != self.registry.include_instance_methods:
            self.registry.include_instance_methods = include
            self.registry.reload()
        elif "reload" in changes and self.options.reload:
            self.registry.reload()

    def set_default_value(self, operator: str, value: Any) -> None:
        self.pipeline.set_default_value(operator, value)

    def set_override_value(self, operator: str, value: Any) -> None:
        self.pipeline.set_override_value(operator, value)

    def set_prefix(self, operator: str, value: str) -> None:
        self.pipeline.set_prefix(operator, value)

    def set_postfix(self, operator: str, value: str) -> None:
        self.pipeline.set_postfix(operator, value)

    def default_value(self, operator: str) -> Any:
        return self.pipeline.default_value(operator)

    def override_value(self, operator: str) -> Any:
        return self.pipeline.override_value(operator)

    # ── Record lifecycle ───────────────────────────────────────────────

    def new_record(self) -> Any:
        return self.model()

    def reset(self, record: Any = None) -> None:
        """Start a fresh record (or reuse ``record``) for the next row."""
        self.record = record if record is not None else self.new_record()
        self.record_errors = []
        self.current_value = None
        self.current_operator = None

    def add_record_error(self, column: Optional[str], message: str) -> None:
        error = RecordError(row=self.row_number, column=column, message=message)
        self.record_errors.append(error)
        self.errors.append(error)

    # ── Mapping ────────────────────────────────────────────────────────

    def populate_mapping(self, headers: list[Any]) -> MappingResult:
        """Map a header row to operators. Raises on strict/mandatory failures."""
        self.headers = ["" if h is None else str(h).strip() for h in headers]
        self.mapping = map_headers(self.headers, self.registry, self.options)
        return self.mapping

    def headers_contain_mandatory(self, mandatory: list[str]) -> bool:
        return not self.missing_mandatory_headers(mandatory)

    def missing_mandatory_headers(self, mandatory: list[str]) -> list[str]:
        return [m for m in mandatory if m not in self.headers]

    # ── Population ─────────────────────────────────────────────────────

    def prepare_data(self, operator: OperatorDescriptor, value: Any) -> Any:
        """Apply the value tables for ``operator`` and hold the result."""
        self.current_operator = operator
        self.current_value = self.pipeline.prepare(operator.name, value)
        return self.current_value

    def process_cell(self, header: str, value: Any) -> None:
        header = str(header).strip()
        mapping = self.mapping.for_header(header)
        if mapping is None:
            logger.warning(f"No mapping for column '{header}' - value ignored")
            return
        if mapping.operator is None:
            self.process_unmapped(header, value)
            return
        self.prepare_data(mapping.operator, value)
        self.process(header)

    def process_unmapped(self, header: str, value: Any) -> None:
        """Hook for force-included columns that have no operator."""
        logger.warning(f"Column '{header}' has no operator on {self.model.__name__} - value ignored")

    def find_and_process(self, column_name: str, value: Any) -> None:
        """Process a value for a column name without a mapped header row."""
        operator = match_header(str(column_name).strip(), self.registry)
        if operator is None:
            message = f"No matching operator found for column {column_name}"
            logger.warning(message)
            self.add_record_error(column_name, message)
            return
        self.prepare_data(operator, value)
        self.process(column_name)

    def process(self, column: Optional[str] = None) -> None:
        """Assign the current value to the current operator on the record."""
        operator = self.current_operator
        if operator is None:
            return
        try:
            self._populate(operator, self.current_value, column or operator.name)
        except CELL_ERRORS as e:
            logger.warning(f"Row {self.row_number} column '{column}': {e}")
            self.add_record_error(column or operator.name, str(e))

    def _populate(self, operator: OperatorDescriptor, value: Any, column: str) -> None:
        log = logger.info if self.verbose else logger.debug
        log(f"Current value to assign to {operator.name}: {value!r}")

        if not (operator.is_association and not is_empty(value) and not operator.accepts(value)):
            coercer.assign(self.record, operator, value)
            return

        # Join-table style collections need the record to exist first.
        if operator.is_collection:
            self.save_if_new()

        resolution = self.resolver.resolve(operator, str(value))
        for warning in resolution.warnings:
            self.add_record_error(column, warning)

        for segment in resolution.segments:
            self.current_value = segment.found
            try:
                coercer.assign(self.record, operator, segment.found)
            except AssignmentFailure as e:
                self.add_record_error(column, str(e))

    def apply_missing_column_defaults(self) -> None:
        """Apply defaults for operators that have no column in this run."""
        inbound = set(self.mapping.operator_names)
        for name, value in self.pipeline.defaults.items():
            operator = self.registry.find(name)
            if operator is None:
                self.add_record_error(name, f"No operator '{name}' on {self.model.__name__} for default value")
                continue
            if operator.name in inbound:
                continue
            try:
                self._populate(operator, value, name)
            except CELL_ERRORS as e:
                self.add_record_error(name, str(e))

    # ── Saving ─────────────────────────────────────────────────────────

    def finalize_row(self) -> bool:
        self.apply_missing_column_defaults()
        return self.save()

    def save_if_new(self) -> None:
        if self.record is None or not self.store.is_new(self.record):
            return
        try:
            self.store.save(self.record)
        except PersistenceFailure as e:
            logger.warning(f"Could not save new {self.model.__name__} before association assignment: {e}")

    def save(self) -> bool:
        """Persist the current record and book it as loaded or failed.

        Raises PersistenceFailure only when abort_on_failure is set.
        """
        if self.record is None:
            return False

        if self.verbose:
            logger.info(f"Saving {self.model.__name__}: {self.record!r}")
        try:
            self.store.save(self.record)
        except PersistenceFailure as e:
            self.failure()
            self.add_record_error(None, str(e))
            logger.error(f"Row {self.row_number}: {e}")
            if self.abort_on_failure:
                raise
            return False

        _remove(self.failed_records, self.record)
        if not _contains(self.loaded_records, self.record):
            self.loaded_records.append(self.record)
        return True

    def failure(self) -> None:
        if self.record is None:
            return
        _remove(self.loaded_records, self.record)
        if not _contains(self.failed_records, self.record):
            self.failed_records.append(self.record)

    # ── Running ────────────────────────────────────────────────────────

    def load_rows(self, source: RowSource) -> LoadReport:
        """Load every data row of ``source`` and return the report."""
        headers = source.header_row()
        self.populate_mapping(headers)
        columns = [
            (i, h) for i, h in enumerate(self.headers)
            if self.mapping.for_header(h) is not None
        ]

        try:
            for row_number, row in enumerate(iter_rows(source), start=2):  # row 1 = header
                if all(is_empty(v) for v in row):
                    continue
                self.row_number = row_number
                self.reset()
                self.rows_processed += 1
                self.store.begin_row()
                for index, header in columns:
                    self.process_cell(header, row[index] if index < len(row) else None)
                self.finalize_row()
                self.store.end_row()
        except PersistenceFailure:
            logger.error(f"Aborting load of {self.model.__name__} at row {self.row_number}")
            self._finish()
            raise
        except Exception:
            logger.error(
                f"Load of {self.model.__name__} failed at row {self.row_number} - rolling back",
                exc_info=True,
            )
            self.store.rollback()
            raise

        self._finish()
        return self.report()

    def perform_load(self, file_path: str | Path, **option_overrides: Any) -> LoadReport:
        """Load a .csv or .xlsx file into the target class."""
        if option_overrides:
            self.update_options(**option_overrides)
        logger.info(f"Perform load of {file_path} with options: {self.options.model_dump()}")

        source = open_row_source(file_path)
        try:
            return self.load_rows(source)
        finally:
            source.close()

    def _finish(self) -> None:
        if self.options.dummy:
            logger.info("Dummy run - rolling back all changes")
            self.store.rollback()
        else:
            self.store.commit()

    # ── Reporting ──────────────────────────────────────────────────────

    @property
    def loaded_count(self) -> int:
        return len(self.loaded_records)

    @property
    def failed_count(self) -> int:
        return len(self.failed_records)

    def report(self) -> LoadReport:
        """Summarise the run. Never raises."""
        logger.info(f"Loading stage complete - {self.loaded_count} rows added.")
        if self.failed_records:
            logger.warning(
                f"Check logs: {self.failed_count} rows contained errors and were NOT saved"
            )
        else:
            logger.info("There were NO failures.")

        status = "completed" if not (self.failed_records or self.errors) else "completed_with_errors"
        return LoadReport(
            run_id=self.run_id,
            target=self.model.__name__,
            status=status,
            rows_processed=self.rows_processed,
            loaded=self.loaded_count,
            failed=self.failed_count,
            unmapped_headers=list(self.mapping.unmapped_headers),
            errors=[e.to_dict() for e in self.errors],
        )
