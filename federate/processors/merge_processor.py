"""Dedupe/merge of target records that share a key."""

from typing import Any, Dict, List, Mapping, Optional, Union

from federate.config import DedupeConfig, DedupeType, KeepStrategy
from federate.records import OutputRecord, get_field_value, stringify_value

COMPOSITE_KEY_SEPARATOR = "::"


def _has_content(value: Any) -> bool:
    unwrapped = get_field_value(value)
    return unwrapped is not None and unwrapped != ""


def _dedupe_key(record: OutputRecord, config: DedupeConfig) -> Optional[str]:
    """Group key for a record, or None when the record has no usable key.

    A composite key renders missing parts as empty strings so such records are
    still grouped with each other.
    """
    if config.is_composite:
        parts = []
        for field_key in config.on_fields:
            value = get_field_value(record.get(field_key))
            parts.append(stringify_value(value) if value is not None else "")
        key = COMPOSITE_KEY_SEPARATOR.join(parts)
    else:
        value = get_field_value(record.get(config.on))
        if value is None or value == "":
            return None
        key = stringify_value(value)
    return key or None


def merge_records(
    records: List[OutputRecord],
    dedupe_config: Optional[Union[DedupeConfig, Mapping[str, Any]]] = None,
) -> List[OutputRecord]:
    """
    Collapse records sharing a dedupe key.

    Groups are emitted in order of first appearance. Records without a key
    (single-field key missing or empty) are dropped.

    * ``delete`` keeps only the first or last record of each group.
    * ``merge`` starts from the first or last record and fills each of its
      empty fields from the other records, in group order.

    Example:
        >>> records = [
        ...     {"id": {"value": "001"}, "name": {"value": "First"}, "email": {"value": "a@b.c"}},
        ...     {"id": {"value": "001"}, "name": {"value": "Last"}},
        ... ]
        >>> merge_records(records, {"on": "id", "type": "merge", "keep": "last"})
        [{'id': {'value': '001'}, 'name': {'value': 'Last'}, 'email': {'value': 'a@b.c'}}]
    """
    if dedupe_config is None or not records:
        return records

    if not isinstance(dedupe_config, DedupeConfig):
        dedupe_config = DedupeConfig.model_validate(dict(dedupe_config))

    grouped: Dict[str, List[OutputRecord]] = {}
    for record in records:
        key = _dedupe_key(record, dedupe_config)
        if key is None:
            continue
        grouped.setdefault(key, []).append(record)

    keep_first = dedupe_config.keep == KeepStrategy.FIRST.value
    result: List[OutputRecord] = []

    for group in grouped.values():
        if len(group) == 1:
            result.append(group[0])
            continue

        base_index = 0 if keep_first else len(group) - 1

        if dedupe_config.type == DedupeType.DELETE.value:
            result.append(group[base_index])
        elif dedupe_config.type == DedupeType.MERGE.value:
            merged = dict(group[base_index])
            for index, other in enumerate(group):
                if index == base_index:
                    continue
                for field_key, value in other.items():
                    if not _has_content(merged.get(field_key)) and get_field_value(value) is not None:
                        merged[field_key] = value
            result.append(merged)
        else:
            # Unknown strategy: leave the group untouched
            result.extend(group)

    return result
