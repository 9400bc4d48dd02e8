"""Checks for a sheet's dedupe configuration."""

from typing import Dict, Optional, Set

from federate.config import DedupeType, FederatedSheetConfig, KeepStrategy
from federate.exceptions import ConfigValidationError
from federate.utils.tracing import NullTracer, Tracer

COMPONENT = "MergeValidator"


def validate_dedupe_config(
    sheet: FederatedSheetConfig,
    field_keys: Set[str],
    merge_fields: Dict[str, Set[str]],
    tracer: Optional[Tracer] = None,
) -> None:
    """
    Validate ``sheet.dedupe_config`` against the sheet's field keys.

    Every key in ``on`` must be a real or virtual field of the sheet, a key
    list must not be empty, and ``type``/``keep`` must be legal. The merge
    fields are recorded per sheet slug in ``merge_fields``.

    Raises:
        ConfigValidationError: On the first violated rule
    """
    tracer = tracer or NullTracer()
    dedupe = sheet.dedupe_config
    if dedupe is None:
        return

    prefix = f'Invalid merge configuration for sheet "{sheet.slug}"'
    tracer.trace(
        COMPONENT,
        f'Found dedupe configuration for sheet "{sheet.display_name}"',
        type=dedupe.type,
        keep=dedupe.keep,
        on=dedupe.on,
    )

    for field_key in dedupe.on_fields:
        if field_key not in field_keys:
            raise ConfigValidationError(
                COMPONENT, f'{prefix}: merge field "{field_key}" does not exist in the sheet'
            )

    if dedupe.is_composite and not dedupe.on_fields:
        raise ConfigValidationError(COMPONENT, f"{prefix}: merge field array cannot be empty")

    if dedupe.type not in {t.value for t in DedupeType}:
        raise ConfigValidationError(COMPONENT, f'{prefix}: type must be "delete" or "merge"')

    if dedupe.keep not in {k.value for k in KeepStrategy}:
        raise ConfigValidationError(COMPONENT, f'{prefix}: keep must be "first" or "last"')

    merge_fields.setdefault(sheet.slug, set()).update(dedupe.on_fields)
    tracer.trace(
        COMPONENT,
        f'Dedupe configuration for sheet "{sheet.display_name}" validated',
        merge_fields=sorted(merge_fields[sheet.slug]),
    )
