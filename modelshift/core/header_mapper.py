"""Header Mapper — reconciles free-text column headers with model operators.

A header names an operator, optionally followed by the lookup key and a
fixed lookup value for association columns:

    Name
    category:title
    colours:name:red

Mapping never touches a record; it only produces the ordered sequence of
HeaderMapping entries the LoadSession drives population with.
"""

import logging
from dataclasses import replace
from typing import Any, Optional

from modelshift.core.config import settings
from modelshift.core.errors import MappingDefinitionError, MissingMandatoryError
from modelshift.core.models import HeaderMapping, LoadOptions, MappingResult, OperatorDescriptor
from modelshift.core.operator_registry import OperatorRegistry, normalize_name

logger = logging.getLogger(__name__)


def match_header(header: str, registry: OperatorRegistry) -> Optional[OperatorDescriptor]:
    """Find the operator for a header, binding any lookup key it carries."""
    descriptor = registry.find(header)
    if descriptor is not None:
        return descriptor

    parts = [p.strip() for p in header.split(settings.name_value_delim)]
    if len(parts) < 2:
        return None

    descriptor = registry.find(parts[0])
    if descriptor is None or not descriptor.is_association:
        return None

    lookup_key = parts[1] or descriptor.default_lookup_key
    fixed_value = settings.name_value_delim.join(parts[2:]) or None
    return replace(
        descriptor,
        default_lookup_key=lookup_key,
        fixed_lookup_value=fixed_value or descriptor.fixed_lookup_value,
    )


def map_headers(
    headers: list[Any],
    registry: OperatorRegistry,
    options: Optional[LoadOptions] = None,
) -> MappingResult:
    """Map headers to operators under the strict/ignore/mandatory policies.

    Raises MappingDefinitionError in strict mode when a header (not ignored
    or force-included) has no operator, and MissingMandatoryError when a
    mandatory operator has no mapped header.
    """
    options = options or LoadOptions()
    ignore = {normalize_name(h) for h in options.ignore}
    forced = {normalize_name(h) for h in options.force_inclusion}

    result = MappingResult()
    not_forced: list[str] = []

    for raw in headers:
        if raw is None:
            continue
        header = str(raw).strip()
        if not header or normalize_name(header) in ignore:
            continue

        try:
            descriptor = match_header(header, registry)
        except Exception as e:
            logger.error(f"Failed to map header '{header}': {e}", exc_info=True)
            raise MappingDefinitionError(
                f"Failed to map header row to operators on {registry.model.__name__}"
            ) from e

        if descriptor is not None:
            result.mappings.append(HeaderMapping(header=header, operator=descriptor))
            continue

        result.unmapped_headers.append(header)
        if options.include_all or normalize_name(header) in forced:
            result.mappings.append(HeaderMapping(header=header))
        else:
            not_forced.append(header)

    if result.unmapped_headers:
        logger.warning(
            f"Headers not mapped to {registry.model.__name__}: {result.unmapped_headers}"
        )
    if options.strict and not_forced:
        raise MappingDefinitionError(
            f"Missing mappings for columns: {', '.join(not_forced)}",
            unmapped=not_forced,
        )

    if options.mandatory:
        mapped = set(result.operator_names)
        for name in options.mandatory:
            descriptor = registry.find(name)
            canonical = descriptor.name if descriptor is not None else name
            if canonical not in mapped:
                result.missing_operators.append(canonical)
        if result.missing_operators:
            for name in result.missing_operators:
                logger.error(f"Mandatory column missing - expected column '{name}'")
            raise MissingMandatoryError(result.missing_operators)

    return result
