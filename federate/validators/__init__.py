from federate.validators.config_validator import validate_config
from federate.validators.field_validator import validate_field, validate_fields
from federate.validators.filter_validator import validate_filters
from federate.validators.merge_validator import validate_dedupe_config
from federate.validators.unpivot_validator import (
    validate_source_fields,
    validate_unpivot_config,
    validate_unpivot_fields,
)

__all__ = [
    "validate_config",
    "validate_field",
    "validate_fields",
    "validate_filters",
    "validate_dedupe_config",
    "validate_source_fields",
    "validate_unpivot_config",
    "validate_unpivot_fields",
]
