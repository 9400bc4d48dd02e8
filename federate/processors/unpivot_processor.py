"""Unpivot: turn one source row into several target rows."""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from federate.config import UnpivotGroupConfig
from federate.records import OutputRecord

LITERAL_PREFIX = "<<"
LITERAL_SUFFIX = ">>"


def is_literal(rule_value: str) -> bool:
    """``<<text>>`` marks a literal instead of a source field key."""
    return rule_value.startswith(LITERAL_PREFIX) and rule_value.endswith(LITERAL_SUFFIX)


def literal_text(rule_value: str) -> str:
    return rule_value[len(LITERAL_PREFIX) : len(rule_value) - len(LITERAL_SUFFIX)]


def _virtual_values(
    source_record: Mapping[str, Any],
    virtual_fields_map: Optional[Mapping[str, Sequence[str]]],
) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for source_key, virtual_keys in (virtual_fields_map or {}).items():
        source_value = source_record.get(source_key)
        if source_value is None:
            continue
        for virtual_key in virtual_keys:
            values[virtual_key] = source_value
    return values


def create_unpivoted_records(
    source_record: Optional[Mapping[str, Any]],
    unpivot_groups: Sequence[Tuple[str, UnpivotGroupConfig]],
    virtual_fields_map: Optional[Mapping[str, Sequence[str]]] = None,
) -> List[OutputRecord]:
    """
    Expand a source record according to its unpivot groups.

    Every rule of every group yields one record. A rule column holding
    ``<<text>>`` becomes ``{"value": "text"}``; any other rule value names a
    source field, copied when present. Rules that populate nothing are dropped.
    Virtual field values are stamped onto every record produced.

    Args:
        source_record: Source values ``{field_key: {"value": ...}}``
        unpivot_groups: ``(group_key, group)`` pairs for this source sheet
        virtual_fields_map: Source key -> virtual target keys

    Returns:
        Zero or more target records
    """
    if not source_record:
        return []

    virtual_data = _virtual_values(source_record, virtual_fields_map)
    records: List[OutputRecord] = []

    for _group_key, group in unpivot_groups:
        for rule in group.field_mappings:
            record: OutputRecord = {}
            for target_key, rule_value in rule.items():
                if not isinstance(rule_value, str):
                    continue
                if is_literal(rule_value):
                    record[target_key] = {"value": literal_text(rule_value)}
                    continue
                source_value = source_record.get(rule_value)
                if source_value is not None:
                    record[target_key] = source_value

            if not record:
                continue

            if virtual_data:
                record.update(virtual_data)
            records.append(record)

    return records
