"""Checks for unpivot sheets and their groups."""

from typing import Optional, Set

from federate.config import FederateConfig, FederatedSheetConfig, UnpivotGroupConfig
from federate.exceptions import ConfigValidationError
from federate.processors.unpivot_processor import is_literal
from federate.utils.tracing import NullTracer, Tracer

COMPONENT = "UnpivotValidator"


def has_source_sheet(group: UnpivotGroupConfig) -> bool:
    return group.source_sheet is not None


def has_source_sheet_slug(group: UnpivotGroupConfig) -> bool:
    return group.source_sheet_slug is not None


def validate_source_fields(
    group: UnpivotGroupConfig, group_key: str, tracer: Optional[Tracer] = None
) -> None:
    """
    Check that every non-literal rule value names a field of the group's inline source sheet.

    Groups that only carry a ``source_sheet_slug`` cannot be checked here; the
    source sheet's fields are only known to the platform.
    """
    tracer = tracer or NullTracer()
    if not group.field_mappings:
        return

    if not has_source_sheet(group):
        tracer.trace(
            COMPONENT,
            f'Group "{group_key}" references its source sheet by slug, skipping source field check',
        )
        return

    source_field_keys = group.source_sheet.field_keys()
    for index, rule in enumerate(group.field_mappings):
        for _target_field, source_field in rule.items():
            if is_literal(source_field):
                continue
            if source_field not in source_field_keys:
                raise ConfigValidationError(
                    COMPONENT,
                    f'Invalid unpivot configuration for group "{group_key}": '
                    f'field mapping at index {index} references source field "{source_field}", '
                    "but this field does not exist in the source sheet",
                )


def validate_unpivot_fields(
    sheet: FederatedSheetConfig, group_key: str, group: UnpivotGroupConfig
) -> None:
    """Check that every target column used by the group is one of the sheet's fields."""
    field_keys = {f.key for f in sheet.fields}
    for rule in group.field_mappings:
        for target_field in rule:
            if target_field not in field_keys:
                raise ConfigValidationError(
                    COMPONENT,
                    f'Invalid unpivot configuration for sheet "{sheet.slug}": '
                    f'unpivot group "{group_key}" references field "{target_field}", '
                    "but this field does not exist in the sheet's fields",
                )


def validate_unpivot_config(
    sheet: FederatedSheetConfig,
    config: FederateConfig,
    source_sheets: Optional[Set[str]] = None,
    tracer: Optional[Tracer] = None,
) -> None:
    """
    Validate the unpivot groups of a sheet. Sheets without ``unpivot_groups`` are skipped.

    Source sheet slugs referenced by the groups are added to ``source_sheets``.

    Raises:
        ConfigValidationError: On the first violated rule
    """
    tracer = tracer or NullTracer()
    if sheet.unpivot_groups is None:
        return

    if not sheet.unpivot_groups:
        raise ConfigValidationError(
            COMPONENT, "Unpivot configuration must have at least one unpivot group"
        )

    tracer.trace(
        COMPONENT,
        f'Validating {len(sheet.unpivot_groups)} unpivot groups for sheet "{sheet.display_name}"',
    )

    for group_key, group in sheet.unpivot_groups.items():
        if not group.field_mappings:
            raise ConfigValidationError(
                COMPONENT, f'Unpivot group "{group_key}" must have at least one field mapping'
            )

        for rule in group.field_mappings:
            if not rule:
                # Fixed wording; consumers match on this exact message
                raise ConfigValidationError(
                    COMPONENT,
                    f'Unpivot group "{group_key}" has an empty field mapping for key: field1',
                )

        if not has_source_sheet(group) and not has_source_sheet_slug(group):
            raise ConfigValidationError(
                COMPONENT,
                f'Unpivot group "{group_key}" must have either source_sheet or source_sheet_slug',
            )

        if has_source_sheet(group) and has_source_sheet_slug(group):
            raise ConfigValidationError(
                COMPONENT,
                f'Unpivot group "{group_key}" must not have both source_sheet and source_sheet_slug',
            )

        if has_source_sheet(group) and not (group.source_sheet.slug or "").strip():
            raise ConfigValidationError(
                COMPONENT, f'Unpivot group "{group_key}" with source_sheet must have a valid slug'
            )

        validate_unpivot_fields(sheet, group_key, group)

        if not config.allow_undeclared_source_fields:
            validate_source_fields(group, group_key, tracer)

        source_slug = group.resolve_source_slug()
        if source_sheets is not None and source_slug:
            source_sheets.add(source_slug)

        tracer.trace(COMPONENT, f'Unpivot group "{group_key}" validated', source=source_slug)
