"""Compiled source-to-target mappings.

A ``SourceMapping`` is built per (source sheet, target sheet) pair by
``FederatedSheetManager.create_mappings`` and consumed by the record processor.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple, Union

from federate.config import UnpivotGroupConfig


class MappingType(str, Enum):
    FIELD = "field"
    UNPIVOT = "unpivot"


@dataclass
class FieldMapping:
    """Copy source fields onto target (real or virtual) fields, one row per source row."""

    sheet_id: str
    sheet_slug: str
    fields: Dict[str, List[str]] = field(default_factory=dict)  # source key -> target keys

    @property
    def type(self) -> MappingType:
        return MappingType.FIELD


@dataclass
class UnpivotMapping:
    """Expand each source row into one target row per unpivot rule."""

    sheet_id: str
    sheet_slug: str
    unpivot_groups: List[Tuple[str, UnpivotGroupConfig]] = field(default_factory=list)
    virtual_fields_map: Dict[str, List[str]] = field(default_factory=dict)  # source key -> virtual keys

    @property
    def type(self) -> MappingType:
        return MappingType.UNPIVOT


SourceMapping = Union[FieldMapping, UnpivotMapping]
