"""Checks that filter rules only reference fields of their sheet."""

from typing import Optional, Set

from federate.config import FederatedSheetConfig
from federate.exceptions import ConfigValidationError
from federate.utils.tracing import NullTracer, Tracer

COMPONENT = "FilterValidator"

# Checked in this order; the first unknown field wins
_FILTER_CHECK_ORDER = (
    "field_values_required",
    "field_values_excluded",
    "all_fields_required",
    "any_fields_required",
    "any_fields_excluded",
)


def validate_filters(
    sheet: FederatedSheetConfig, field_keys: Set[str], tracer: Optional[Tracer] = None
) -> None:
    """
    Validate filter references of a sheet against its real and virtual field keys.

    Raises:
        ConfigValidationError: When a filter names a field the sheet does not have
    """
    tracer = tracer or NullTracer()
    if not sheet.has_filters():
        return

    for filter_name in _FILTER_CHECK_ORDER:
        referenced = getattr(sheet, filter_name)
        if not referenced:
            continue
        # dict filters reference their keys, list filters their items
        for field_key in referenced:
            if field_key not in field_keys:
                raise ConfigValidationError(
                    COMPONENT,
                    f'Invalid filter configuration for sheet "{sheet.slug}": '
                    f'field "{field_key}" in {filter_name} does not exist in the sheet',
                )
        tracer.trace(
            COMPONENT,
            f'{filter_name} validated for sheet "{sheet.display_name}"',
            fields=len(referenced),
        )
