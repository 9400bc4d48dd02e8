"""Federated sheet manager: compiles mappings and runs records through them."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from federate.config import (
    DedupeConfig,
    FederateConfig,
    FederatedSheetConfig,
    FilterConfig,
    SheetKind,
    UnpivotGroupConfig,
)
from federate.filters.record_filter import filter_records
from federate.mapping import FieldMapping, SourceMapping, UnpivotMapping
from federate.processors.merge_processor import merge_records
from federate.processors.record_processor import process_record
from federate.records import OutputRecord
from federate.utils.tracing import Tracer, tracer_for
from federate.validators.config_validator import validate_config

COMPONENT = "FederatedSheetManager"


@dataclass
class LiveSheet:
    """A target sheet as created on the platform."""

    id: str
    slug: str
    name: Optional[str] = None


@dataclass
class FederationState:
    """Everything accumulated during one federation pass, keyed by target sheet id."""

    records_by_sheet_id: Dict[str, List[OutputRecord]] = field(default_factory=dict)
    dedupe_configs: Dict[str, DedupeConfig] = field(default_factory=dict)
    sheet_filters: Dict[str, FilterConfig] = field(default_factory=dict)
    virtual_field_keys: Dict[str, Set[str]] = field(default_factory=dict)


def _sheet_identity(sheet: Any) -> Tuple[str, str]:
    if isinstance(sheet, Mapping):
        return sheet["id"], sheet["slug"]
    return sheet.id, sheet.slug


def _record_values(record: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(record, Mapping):
        values = record.get("values")
    else:
        values = getattr(record, "values", None)
    return values if isinstance(values, Mapping) else None


class FederatedSheetManager:
    """
    Re-projects source sheet records into the sheets of a federated workbook.

    Lifecycle of one federation pass:

    1. construct with the configuration (validated immediately, raises
       ``ConfigValidationError`` when invalid)
    2. ``create_mappings`` once per target sheet
    3. ``add_records`` for every page of every source sheet
    4. ``get_records`` once, for deduplicated, filtered output with virtual
       fields removed

    ``clear_mappings`` resets to step 2 without re-validating. An instance is
    not safe for concurrent use.
    """

    def __init__(
        self, config: Union[FederateConfig, Mapping[str, Any]], tracer: Optional[Tracer] = None
    ):
        if not isinstance(config, FederateConfig):
            config = FederateConfig.model_validate(dict(config))
        self.config = config
        self.tracer = tracer or tracer_for(config)

        source_sheets = validate_config(config, self.tracer)

        self._source_mappings: Dict[str, List[SourceMapping]] = {
            slug: [] for slug in sorted(source_sheets)
        }
        self._state = FederationState()

        self.tracer.trace(
            COMPONENT,
            f"Initialized with {len(self._source_mappings)} source sheets",
            source_sheets=list(self._source_mappings),
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def source_sheet_slugs(self) -> List[str]:
        return list(self._source_mappings)

    def has_source_sheet(self, slug: str) -> bool:
        result = slug in self._source_mappings
        self.tracer.trace(
            COMPONENT, f"Checking if {slug} is a source sheet: {'yes' if result else 'no'}"
        )
        return result

    def mappings_for(self, source_slug: str) -> List[SourceMapping]:
        return list(self._source_mappings.get(source_slug, []))

    def find_blueprint(self, sheet_id: str) -> Optional[FederatedSheetConfig]:
        """Look up the sheet configuration behind a target sheet id, or None."""
        slug = None
        for mappings in self._source_mappings.values():
            for mapping in mappings:
                if mapping.sheet_id == sheet_id:
                    slug = mapping.sheet_slug
                    break
            if slug is not None:
                break

        if slug is None:
            self.tracer.warn(COMPONENT, f"Could not find slug for sheet id {sheet_id}")
            return None
        return self.config.sheet_by_slug(slug)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def clear_mappings(self) -> None:
        """Drop all mappings and accumulated records; known source sheets are kept."""
        self.tracer.trace(COMPONENT, "Clearing all federated sheet mappings and data")
        self._state = FederationState()
        self._source_mappings = {slug: [] for slug in self._source_mappings}

    def create_mappings(
        self, blueprint: Union[FederatedSheetConfig, Mapping[str, Any]], sheet: Any
    ) -> None:
        """
        Compile the mappings feeding one target sheet.

        Args:
            blueprint: Target sheet configuration
            sheet: Live target sheet; anything with ``id`` and ``slug``
                (attributes or mapping keys)
        """
        if not isinstance(blueprint, FederatedSheetConfig):
            blueprint = FederatedSheetConfig.model_validate(dict(blueprint))
        sheet_id, sheet_slug = _sheet_identity(sheet)
        state = self._state

        self.tracer.trace(COMPONENT, f"Creating mappings for target sheet {sheet_slug} ({sheet_id})")
        self._drop_sheet(sheet_id)
        state.records_by_sheet_id[sheet_id] = []

        if blueprint.dedupe_config is not None:
            state.dedupe_configs[sheet_id] = blueprint.dedupe_config
            self.tracer.trace(COMPONENT, f"Found dedupe configuration for sheet {sheet_slug}")

        target_filters = blueprint.filter_config()
        if not target_filters.is_empty():
            state.sheet_filters[sheet_id] = target_filters
            self.tracer.trace(COMPONENT, f"Found target filter configuration for sheet {sheet_slug}")

        virtual_keys = blueprint.virtual_field_keys()
        state.virtual_field_keys[sheet_id] = virtual_keys
        if virtual_keys:
            self.tracer.trace(
                COMPONENT,
                f"Stored {len(virtual_keys)} virtual field keys for sheet {sheet_slug}",
                keys=sorted(virtual_keys),
            )

        virtual_fields_by_source = self._virtual_fields_by_source(blueprint, sheet_slug)

        if blueprint.sheet_kind == SheetKind.UNPIVOT:
            self._create_unpivot_mappings(
                blueprint, sheet_id, sheet_slug, virtual_fields_by_source
            )
        else:
            self._create_field_mappings(blueprint, sheet_id, sheet_slug, virtual_keys)

        self.tracer.trace(COMPONENT, f"Completed mapping creation for sheet {sheet_slug}")

    def _drop_sheet(self, sheet_id: str) -> None:
        """Forget a previous create_mappings call for the same target sheet."""
        state = self._state
        state.dedupe_configs.pop(sheet_id, None)
        state.sheet_filters.pop(sheet_id, None)
        for source_slug, mappings in self._source_mappings.items():
            kept = [m for m in mappings if m.sheet_id != sheet_id]
            if len(kept) != len(mappings):
                self.tracer.trace(
                    COMPONENT,
                    f"Replacing existing mappings from source {source_slug} to sheet {sheet_id}",
                )
                self._source_mappings[source_slug] = kept

    def _virtual_fields_by_source(
        self, blueprint: FederatedSheetConfig, sheet_slug: str
    ) -> Dict[str, Dict[str, List[str]]]:
        """Source slug -> {source key: [virtual keys]} for the sheet's virtual fields."""
        by_source: Dict[str, Dict[str, List[str]]] = {}
        for virtual_field in blueprint.virtual_fields or []:
            reference = virtual_field.source_reference()
            if reference is None:
                self.tracer.warn(
                    COMPONENT,
                    f"Virtual field {virtual_field.key} in sheet {sheet_slug} "
                    "is missing required federate_config",
                )
                continue
            source_slug, source_key = reference
            targets = by_source.setdefault(source_slug, {}).setdefault(source_key, [])
            targets.append(virtual_field.key)
        return by_source

    def _mappings_list(self, source_slug: str) -> List[SourceMapping]:
        return self._source_mappings.setdefault(source_slug, [])

    def _create_unpivot_mappings(
        self,
        blueprint: FederatedSheetConfig,
        sheet_id: str,
        sheet_slug: str,
        virtual_fields_by_source: Dict[str, Dict[str, List[str]]],
    ) -> None:
        groups_by_source: Dict[str, List[Tuple[str, UnpivotGroupConfig]]] = {}
        for group_key, group in blueprint.unpivot_groups.items():
            source_slug = group.resolve_source_slug()
            if source_slug is None:
                self.tracer.warn(
                    COMPONENT,
                    f"No valid source sheet slug found for unpivot group {group_key} "
                    f"in sheet {sheet_slug}",
                )
                continue
            groups_by_source.setdefault(source_slug, []).append((group_key, group))

        for source_slug, groups in groups_by_source.items():
            mapping = UnpivotMapping(
                sheet_id=sheet_id,
                sheet_slug=sheet_slug,
                unpivot_groups=groups,
                virtual_fields_map={
                    key: list(targets)
                    for key, targets in virtual_fields_by_source.get(source_slug, {}).items()
                },
            )
            self._mappings_list(source_slug).append(mapping)
            self.tracer.trace(
                COMPONENT,
                f"Created unpivot mapping from source {source_slug} to sheet {sheet_slug}",
                groups=len(groups),
                virtual_fields=len(mapping.virtual_fields_map),
            )

    def _create_field_mappings(
        self,
        blueprint: FederatedSheetConfig,
        sheet_id: str,
        sheet_slug: str,
        virtual_keys: Set[str],
    ) -> None:
        fields_by_source: Dict[str, Dict[str, List[str]]] = {}
        for target_field in blueprint.all_fields():
            reference = target_field.source_reference()
            if reference is None:
                if target_field.federate_config is not None:
                    self.tracer.warn(
                        COMPONENT,
                        f"Field {target_field.key} in sheet {sheet_slug} "
                        "is missing required federate_config parts",
                    )
                continue
            source_slug, source_key = reference
            fields_by_source.setdefault(source_slug, {}).setdefault(source_key, []).append(
                target_field.key
            )
            self.tracer.trace(
                COMPONENT,
                f"Mapped {'virtual' if target_field.key in virtual_keys else 'real'} field "
                f"{source_key} from {source_slug} to {target_field.key} in {sheet_slug}",
            )

        for source_slug, fields_map in fields_by_source.items():
            self._mappings_list(source_slug).append(
                FieldMapping(sheet_id=sheet_id, sheet_slug=sheet_slug, fields=fields_map)
            )
            self.tracer.trace(
                COMPONENT,
                f"Created field mapping from source {source_slug} to sheet {sheet_slug}",
                fields=len(fields_map),
            )

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def add_records(self, source_slug: str, records: Optional[Iterable[Any]]) -> None:
        """
        Run a batch of source records through every mapping of their source sheet.

        Records are platform records (``{"id": ..., "values": {...}}`` or objects
        with a ``values`` attribute). Output is appended per target sheet in
        source record order. Unknown source sheets and empty batches are ignored.
        """
        records = list(records or [])
        if not source_slug or not records:
            self.tracer.warn(
                COMPONENT,
                f"Invalid inputs for add_records: source_slug={source_slug}, "
                f"records count={len(records)}",
            )
            return

        mappings = self._source_mappings.get(source_slug)
        if not mappings:
            self.tracer.warn(
                COMPONENT,
                f"No mappings found for source sheet {source_slug}, skipping record processing",
            )
            return

        for mapping in mappings:
            target_records = self._state.records_by_sheet_id.setdefault(mapping.sheet_id, [])
            processed: List[OutputRecord] = []

            for record in records:
                values = _record_values(record) if record is not None else None
                if values is None:
                    self.tracer.warn(
                        COMPONENT, f"Skipping invalid record object from source {source_slug}"
                    )
                    continue
                processed.extend(process_record(values, source_slug, mapping))

            if processed:
                target_records.extend(processed)
                self.tracer.trace(
                    COMPONENT,
                    f"Added {len(processed)} processed records to sheet {mapping.sheet_slug}",
                    total=len(target_records),
                )
            else:
                self.tracer.warn(
                    COMPONENT,
                    f"No records resulted from processing for target sheet {mapping.sheet_slug} "
                    f"from source {source_slug}",
                )

    def get_records(self) -> Dict[str, List[OutputRecord]]:
        """
        Finalize every mapped target sheet.

        Per sheet: dedupe, then filter (both still see virtual fields), then
        remove virtual fields. Sheets without records map to an empty list.

        Returns:
            Target sheet id -> finished records
        """
        state = self._state
        result: Dict[str, List[OutputRecord]] = {}

        for sheet_id, records in state.records_by_sheet_id.items():
            if not records:
                self.tracer.warn(COMPONENT, f"Sheet {sheet_id} has no records after processing")
                result[sheet_id] = []
                continue

            merged = merge_records(records, state.dedupe_configs.get(sheet_id))

            target_filters = state.sheet_filters.get(sheet_id)
            filtered = filter_records(merged, target_filters) if target_filters else merged

            virtual_keys = state.virtual_field_keys.get(sheet_id) or set()
            if virtual_keys:
                final = [
                    {key: value for key, value in record.items() if key not in virtual_keys}
                    for record in filtered
                ]
            else:
                final = list(filtered)

            result[sheet_id] = final
            self.tracer.trace(
                COMPONENT,
                f"Final record count for sheet {sheet_id}: {len(final)}",
                accumulated=len(records),
                after_dedupe=len(merged),
                after_filters=len(filtered),
            )

        return result
