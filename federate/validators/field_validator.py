"""Checks for real and virtual field definitions of a federated sheet."""

from typing import List, Optional, Set

from federate.config import FederateConfig, FederatedProperty
from federate.exceptions import ConfigValidationError
from federate.utils.tracing import NullTracer, Tracer

COMPONENT = "FieldValidator"


def validate_field(
    field: FederatedProperty, config: FederateConfig, tracer: Optional[Tracer] = None
) -> None:
    """
    Validate one field's federate_config.

    A ``source_field_key`` needs exactly one of ``source_sheet`` and
    ``source_sheet_slug``, and either of those needs a ``source_field_key``.
    With an inline ``source_sheet`` the key must exist in that sheet unless
    ``allow_undeclared_source_fields`` is set.

    Raises:
        ConfigValidationError: On the first violated rule
    """
    tracer = tracer or NullTracer()
    federate_config = field.federate_config
    if federate_config is None:
        tracer.trace(COMPONENT, f'Field "{field.key}" has no federate_config, skipping')
        return

    has_source_sheet = federate_config.source_sheet is not None
    has_source_sheet_slug = federate_config.source_sheet_slug is not None
    has_source_field_key = federate_config.source_field_key is not None

    if has_source_field_key and not has_source_sheet and not has_source_sheet_slug:
        raise ConfigValidationError(
            COMPONENT, "Field with source_field_key must have a source_sheet_slug"
        )

    if has_source_sheet_slug and not has_source_field_key:
        raise ConfigValidationError(
            COMPONENT, "Field with source_sheet_slug must have a source_field_key"
        )

    if has_source_sheet and not has_source_field_key:
        raise ConfigValidationError(
            COMPONENT, "Field with source_sheet must have a source_field_key"
        )

    if has_source_sheet and has_source_sheet_slug:
        raise ConfigValidationError(
            COMPONENT,
            f'Field "{field.key}" must not have both source_sheet and source_sheet_slug',
        )

    if has_source_sheet and not config.allow_undeclared_source_fields:
        source_sheet = federate_config.source_sheet
        source_field_key = federate_config.source_field_key
        if source_field_key not in source_sheet.field_keys():
            raise ConfigValidationError(
                COMPONENT,
                f'Field "{source_field_key}" not found in source sheet "{source_sheet.slug}"',
            )

    tracer.trace(COMPONENT, f'Field "{field.key}" validated')


def _collect_source_sheets(field: FederatedProperty, source_sheets: Set[str]) -> None:
    federate_config = field.federate_config
    if federate_config is None:
        return
    if federate_config.source_sheet is not None and federate_config.source_sheet.slug:
        source_sheets.add(federate_config.source_sheet.slug)
    if federate_config.source_sheet_slug:
        source_sheets.add(federate_config.source_sheet_slug)


def validate_fields(
    real_fields: List[FederatedProperty],
    virtual_fields: Optional[List[FederatedProperty]],
    sheet_slug: str,
    source_sheets: Set[str],
    config: FederateConfig,
    tracer: Optional[Tracer] = None,
) -> Set[str]:
    """
    Validate every real and virtual field of a sheet.

    Keys must be unique across both kinds. Source sheet slugs referenced by any
    field are added to ``source_sheets``.

    Returns:
        All field keys of the sheet, real and virtual
    """
    tracer = tracer or NullTracer()
    all_field_keys: Set[str] = set()
    real_field_keys: Set[str] = set()

    def process(fields: List[FederatedProperty], is_virtual: bool) -> None:
        for field in fields:
            validate_field(field, config, tracer)

            if field.key in all_field_keys:
                if field.key in real_field_keys:
                    kind = "collision with real field" if is_virtual else "duplicate real field"
                else:
                    kind = "duplicate virtual field"
                raise ConfigValidationError(
                    COMPONENT,
                    f'Duplicate field key "{field.key}" ({kind}) found in sheet "{sheet_slug}". '
                    "Keys must be unique across real and virtual fields.",
                )

            all_field_keys.add(field.key)
            if not is_virtual:
                real_field_keys.add(field.key)
            _collect_source_sheets(field, source_sheets)

    process(real_fields, is_virtual=False)
    if virtual_fields:
        process(virtual_fields, is_virtual=True)

    tracer.trace(
        COMPONENT,
        f'Validated {len(all_field_keys)} fields for sheet "{sheet_slug}"',
        real=len(real_field_keys),
        virtual=len(all_field_keys) - len(real_field_keys),
    )
    return all_field_keys
