"""Turns one source record into target records according to a compiled mapping."""

from typing import Any, List, Mapping, Optional, Sequence

from federate.mapping import FieldMapping, SourceMapping, UnpivotMapping
from federate.processors.unpivot_processor import create_unpivoted_records
from federate.records import OutputRecord
from federate.utils.logging import get_logger


def create_standard_record(
    record_values: Mapping[str, Any], fields: Mapping[str, Sequence[str]]
) -> Optional[OutputRecord]:
    """
    Copy mapped source fields onto their target (real or virtual) keys.

    One source key may feed several targets, e.g. a real field and a virtual
    field reading the same source column; each target gets the value.

    The whole value wrapper is copied. A source key that is absent (or None)
    is skipped; a present wrapper is copied even when its inner value is None.

    Args:
        record_values: Source values ``{field_key: {"value": ...}}``
        fields: Source key -> target keys

    Returns:
        The target record, or None when no mapped source key was present
    """
    result: OutputRecord = {}
    for source_key, target_keys in fields.items():
        source_value = record_values.get(source_key)
        if source_value is None:
            continue
        for target_key in target_keys:
            result[target_key] = source_value

    return result or None


def process_record(
    record_values: Mapping[str, Any], source_sheet_slug: str, mapping: SourceMapping
) -> List[OutputRecord]:
    """
    Process one source record through one mapping.

    Returns:
        A list with one record for a field mapping (empty when nothing mapped),
        or zero or more records for an unpivot mapping. A record that cannot be
        processed is logged and yields an empty list.
    """
    try:
        if isinstance(mapping, UnpivotMapping):
            return create_unpivoted_records(
                record_values, mapping.unpivot_groups, mapping.virtual_fields_map
            )
        if isinstance(mapping, FieldMapping):
            record = create_standard_record(record_values, mapping.fields)
            return [record] if record is not None else []
        raise ValueError(f"Unsupported mapping: {type(mapping).__name__}")
    except (TypeError, AttributeError, KeyError) as e:
        get_logger().error(
            "Error processing record",
            component="RecordProcessor",
            mapping_type=str(mapping.type.value),
            source_sheet=source_sheet_slug,
            target_sheet=mapping.sheet_slug,
            error=str(e),
        )
        return []
