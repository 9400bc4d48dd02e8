"""Entry point for validating a whole federation configuration."""

from typing import Any, Dict, Mapping, Optional, Set, Union

from federate.config import FederateConfig
from federate.exceptions import ConfigValidationError
from federate.utils.tracing import Tracer, tracer_for
from federate.validators.field_validator import validate_fields
from federate.validators.filter_validator import validate_filters
from federate.validators.merge_validator import validate_dedupe_config
from federate.validators.unpivot_validator import validate_unpivot_config

COMPONENT = "ConfigValidator"


def validate_config(
    config: Union[FederateConfig, Mapping[str, Any]], tracer: Optional[Tracer] = None
) -> Set[str]:
    """
    Validate a federation configuration and collect its source sheet slugs.

    Per sheet, in order:

    1. the slug is unique within the workbook
    2. the sheet has at least one field
    3. real and virtual fields are well formed and their keys unique
    4. the dedupe configuration references existing fields
    5. unpivot groups are complete and reference existing fields
    6. filters reference existing fields

    Validation stops at the first violation.

    Args:
        config: Federation configuration
        tracer: Trace sink; defaults to the one implied by ``config.debug``

    Returns:
        Slugs of every source sheet referenced by a field or unpivot group

    Raises:
        ConfigValidationError: Describing the first violated rule
    """
    if not isinstance(config, FederateConfig):
        config = FederateConfig.model_validate(dict(config))
    tracer = tracer or tracer_for(config)

    sheets = config.federated_workbook.sheets
    if not sheets:
        raise ConfigValidationError(
            COMPONENT,
            "Invalid federation configuration: federated_workbook must contain at least one sheet",
        )

    tracer.trace(COMPONENT, f"Validating federation configuration with {len(sheets)} sheets")

    sheet_slugs: Set[str] = set()
    source_sheets: Set[str] = set()
    merge_fields: Dict[str, Set[str]] = {}

    for sheet in sheets:
        if sheet.slug in sheet_slugs:
            raise ConfigValidationError(
                COMPONENT,
                f'Duplicate sheet slug found: "{sheet.slug}". Sheet slugs must be unique.',
            )
        sheet_slugs.add(sheet.slug)

        if not sheet.fields:
            raise ConfigValidationError(
                COMPONENT, f'Sheet "{sheet.slug}" must have at least one field'
            )

        field_keys = validate_fields(
            sheet.fields, sheet.virtual_fields, sheet.slug, source_sheets, config, tracer
        )
        validate_dedupe_config(sheet, field_keys, merge_fields, tracer)
        validate_unpivot_config(sheet, config, source_sheets, tracer)
        validate_filters(sheet, field_keys, tracer)

        tracer.trace(COMPONENT, f'Sheet "{sheet.slug}" validated')

    tracer.trace(
        COMPONENT,
        "Federation configuration validated",
        source_sheets=sorted(source_sheets),
    )
    return source_sheets
