"""Record filter: decides which finished target records are kept."""

from typing import Any, List, Mapping, Optional, Union

from federate.config import FilterConfig
from federate.records import OutputRecord, get_field_value, stringify_value

FilterLike = Union[FilterConfig, Mapping[str, Any]]


def _as_filter_config(filters: Optional[FilterLike]) -> Optional[FilterConfig]:
    if filters is None or isinstance(filters, FilterConfig):
        return filters
    return FilterConfig.model_validate(dict(filters))


def filter_records(
    records: List[OutputRecord], filters: Optional[FilterLike] = None
) -> List[OutputRecord]:
    """
    Filter records with a filter configuration, preserving order.

    Example:
        >>> records = [
        ...     {"id": {"value": "1"}, "status": {"value": "active"}},
        ...     {"id": {"value": "2"}, "status": {"value": "inactive"}},
        ... ]
        >>> filter_records(records, {"field_values_required": {"status": ["active"]}})
        [{'id': {'value': '1'}, 'status': {'value': 'active'}}]
    """
    config = _as_filter_config(filters)
    if config is None or config.is_empty():
        return records

    return [record for record in records if should_include_record(record, config)]


def should_include_record(record_values: Mapping[str, Any], filters: Optional[FilterLike]) -> bool:
    """
    Check one record against the filter rules. All rules must pass.

    Values may be ``{"value": ...}`` wrappers or bare values.

    Args:
        record_values: Field key -> value mapping
        filters: Filter rules

    Returns:
        True if the record should be kept
    """
    config = _as_filter_config(filters)
    if config is None or config.is_empty():
        return True

    def value_of(field_key: str) -> Any:
        return get_field_value(record_values.get(field_key))

    if config.all_fields_required:
        for field_key in config.all_fields_required:
            if value_of(field_key) is None:
                return False

    if config.any_fields_required:
        if not any(value_of(field_key) is not None for field_key in config.any_fields_required):
            return False

    # Any excluded field being populated disqualifies the record
    if config.any_fields_excluded:
        for field_key in config.any_fields_excluded:
            if value_of(field_key) is not None:
                return False

    if config.field_values_required:
        for field_key, required_values in config.field_values_required.items():
            value = value_of(field_key)
            if value is None:
                return False
            if stringify_value(value) not in required_values:
                return False

    if config.field_values_excluded:
        for field_key, excluded_values in config.field_values_excluded.items():
            value = value_of(field_key)
            if value is None:
                continue
            if stringify_value(value) in excluded_values:
                return False

    return True
