"""Configuration models for federation.

The models only check shapes and types. Referential and structural rules
(slug uniqueness, field references, dedupe keys, unpivot targets) are enforced
by ``federate.validators`` when a ``FederatedSheetManager`` is built, so that
every rejection carries a component-tagged message.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union

from pydantic import BaseModel, Field, field_validator

from federate.records import stringify_value


class DedupeType(str, Enum):
    """How duplicate records are collapsed."""

    DELETE = "delete"  # keep one record, drop the rest
    MERGE = "merge"  # keep one record, fill its gaps from the rest


class KeepStrategy(str, Enum):
    """Which duplicate wins."""

    FIRST = "first"
    LAST = "last"


class SheetKind(str, Enum):
    """Target sheet variants."""

    STANDARD = "standard"
    UNPIVOT = "unpivot"


class ActionMode(str, Enum):
    """Execution mode of the platform action that triggers federation."""

    FOREGROUND = "foreground"
    BACKGROUND = "background"


# ============================================
# Field Configuration
# ============================================


class PropertyConfig(BaseModel):
    """A platform sheet field. Unknown platform keys (constraints, config, ...) are kept."""

    model_config = {"extra": "allow"}

    key: str = Field(description="Field key, unique within its sheet")
    type: str = Field(default="string", description="Platform field type")
    label: Optional[str] = Field(default=None, description="Display label")


class SourceSheetConfig(BaseModel):
    """Inline declaration of a source sheet, used to check field references locally."""

    model_config = {"extra": "allow"}

    slug: Optional[str] = Field(default=None, description="Source sheet slug")
    name: Optional[str] = Field(default=None, description="Source sheet name")
    fields: List[PropertyConfig] = Field(default_factory=list)

    def field_keys(self) -> Set[str]:
        return {f.key for f in self.fields}


class FederateFieldConfig(BaseModel):
    """
    Where a federated field takes its value from.

    Reference the source sheet either by slug or inline (the inline form lets
    the validator check that ``source_field_key`` really exists):

    ```yaml
    federate_config:
      source_sheet_slug: orders
      source_field_key: amount
    ```
    """

    source_field_key: Optional[str] = None
    source_sheet_slug: Optional[str] = None
    source_sheet: Optional[SourceSheetConfig] = None

    def resolve_source_slug(self) -> Optional[str]:
        if self.source_sheet_slug:
            return self.source_sheet_slug
        if self.source_sheet is not None and self.source_sheet.slug:
            return self.source_sheet.slug
        return None


class FederatedProperty(PropertyConfig):
    """A target field, optionally fed from a source sheet field."""

    federate_config: Optional[FederateFieldConfig] = None

    def source_reference(self):
        """Return ``(source_slug, source_field_key)`` or None when either half is missing."""
        if self.federate_config is None:
            return None
        slug = self.federate_config.resolve_source_slug()
        source_key = self.federate_config.source_field_key
        if not slug or not source_key:
            return None
        return slug, source_key


# ============================================
# Dedupe / Filter Configuration
# ============================================


class DedupeConfig(BaseModel):
    """
    Collapse duplicate target records.

    Example:
    ```yaml
    dedupe_config:
      on: [first_name, last_name]
      type: merge
      keep: last
    ```

    ``type`` and ``keep`` stay plain strings here; illegal values are reported
    by the merge validator.
    """

    on: Union[str, List[str]] = Field(description="Field key, or keys for a composite key")
    type: str = Field(description="'delete' or 'merge'")
    keep: str = Field(description="'first' or 'last'")

    @property
    def is_composite(self) -> bool:
        return isinstance(self.on, list)

    @property
    def on_fields(self) -> List[str]:
        if isinstance(self.on, list):
            return list(self.on)
        return [self.on]


FILTER_KEYS = (
    "field_values_required",
    "field_values_excluded",
    "all_fields_required",
    "any_fields_required",
    "any_fields_excluded",
)


def _stringify_allowed_values(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: [stringify_value(v) for v in values] if isinstance(values, list) else values
            for key, values in value.items()
        }
    return value


class FilterConfig(BaseModel):
    """
    Inclusion/exclusion rules applied to finished target records.

    Example:
    ```yaml
    all_fields_required: [total]
    field_values_excluded:
      status: [cancelled, void]
    ```
    """

    all_fields_required: Optional[List[str]] = None
    any_fields_required: Optional[List[str]] = None
    any_fields_excluded: Optional[List[str]] = None
    field_values_required: Optional[Dict[str, List[str]]] = None
    field_values_excluded: Optional[Dict[str, List[str]]] = None

    @field_validator("field_values_required", "field_values_excluded", mode="before")
    @classmethod
    def stringify_values(cls, value: Any) -> Any:
        """Allowed values are compared as strings; accept numbers and booleans in YAML."""
        return _stringify_allowed_values(value)

    def is_empty(self) -> bool:
        return not any(getattr(self, key) for key in FILTER_KEYS)


# ============================================
# Sheet Configuration
# ============================================


class UnpivotGroupConfig(BaseModel):
    """
    One unpivot group: a source sheet plus rules that each emit one target row.

    Each rule maps a target column to a source field key, or to a literal
    written as ``<<text>>``:

    ```yaml
    unpivot_groups:
      contacts:
        source_sheet_slug: companies
        field_mappings:
          - {name: primary_contact, role: "<<Primary>>"}
          - {name: billing_contact, role: "<<Billing>>"}
    ```
    """

    field_mappings: List[Dict[str, str]] = Field(default_factory=list)
    source_sheet_slug: Optional[str] = None
    source_sheet: Optional[SourceSheetConfig] = None

    def resolve_source_slug(self) -> Optional[str]:
        if self.source_sheet_slug:
            return self.source_sheet_slug
        if self.source_sheet is not None and self.source_sheet.slug:
            return self.source_sheet.slug
        return None


class FederatedSheetConfig(BaseModel):
    """
    A target sheet in the federated workbook.

    A sheet with non-empty ``unpivot_groups`` is an unpivot sheet; otherwise
    each field maps one source field. ``virtualFields`` are mapped like real
    fields but only feed dedupe and filter decisions and never reach output.
    """

    model_config = {"populate_by_name": True, "extra": "allow"}

    slug: str = Field(description="Sheet slug, unique within the workbook")
    name: Optional[str] = Field(default=None, description="Sheet display name")
    fields: List[FederatedProperty] = Field(default_factory=list)
    virtual_fields: Optional[List[FederatedProperty]] = Field(default=None, alias="virtualFields")
    dedupe_config: Optional[DedupeConfig] = None
    unpivot_groups: Optional[Dict[str, UnpivotGroupConfig]] = None

    all_fields_required: Optional[List[str]] = None
    any_fields_required: Optional[List[str]] = None
    any_fields_excluded: Optional[List[str]] = None
    field_values_required: Optional[Dict[str, List[str]]] = None
    field_values_excluded: Optional[Dict[str, List[str]]] = None

    @field_validator("field_values_required", "field_values_excluded", mode="before")
    @classmethod
    def stringify_values(cls, value: Any) -> Any:
        return _stringify_allowed_values(value)

    @property
    def sheet_kind(self) -> SheetKind:
        if self.unpivot_groups:
            return SheetKind.UNPIVOT
        return SheetKind.STANDARD

    @property
    def display_name(self) -> str:
        return self.name or self.slug or "unknown"

    def all_fields(self) -> List[FederatedProperty]:
        return list(self.fields) + list(self.virtual_fields or [])

    def virtual_field_keys(self) -> Set[str]:
        return {vf.key for vf in self.virtual_fields or []}

    def has_filters(self) -> bool:
        return any(getattr(self, key) is not None for key in FILTER_KEYS)

    def filter_config(self) -> FilterConfig:
        return FilterConfig(**{key: getattr(self, key) for key in FILTER_KEYS})


class FederatedWorkbookConfig(BaseModel):
    """The workbook created to hold federated sheets. Extra keys go to the platform as-is."""

    model_config = {"extra": "allow"}

    name: str = Field(description="Workbook name; existing workbooks with this name are replaced")
    sheets: List[FederatedSheetConfig] = Field(default_factory=list)


DEFAULT_ACTION_DESCRIPTION = "Create Federated Workbook with source data"


class ActionConfig(BaseModel):
    """Platform action button, attached to the source workbook, that starts federation."""

    confirm: bool = True
    mode: ActionMode = ActionMode.FOREGROUND
    label: str = "Federate"
    description: Optional[str] = None
    primary: bool = True

    def to_payload(self, target_id: str, operation: str) -> Dict[str, Any]:
        """Build the platform action body for the workbook ``target_id``."""
        return {
            "targetId": target_id,
            "operation": operation,
            "mode": self.mode.value,
            "label": self.label,
            "primary": self.primary,
            "description": self.description or DEFAULT_ACTION_DESCRIPTION,
            "confirm": self.confirm,
            "mount": {"type": "workbook"},
        }


class FederateConfig(BaseModel):
    """
    Root federation configuration.

    Example:
    ```yaml
    source_workbook_name: Company Data
    federated_workbook:
      name: Federated Views
      sheets:
        - slug: order_totals
          fields:
            - key: total
              type: number
              federate_config:
                source_sheet_slug: orders
                source_field_key: amount
          all_fields_required: [total]
    ```
    """

    source_workbook_name: str = Field(description="Workbook holding the source sheets")
    federated_workbook: FederatedWorkbookConfig
    allow_undeclared_source_fields: bool = Field(
        default=False,
        description="Skip checking that referenced source fields exist in inline source sheets",
    )
    debug: bool = Field(default=False, description="Trace every federation step")
    action: ActionConfig = Field(default_factory=ActionConfig)

    @property
    def operation(self) -> str:
        """Job operation name, e.g. ``federate-company-data`` for "Company Data"."""
        return "federate-" + self.source_workbook_name.strip().lower().replace(" ", "-")

    def sheet_by_slug(self, slug: str) -> Optional[FederatedSheetConfig]:
        for sheet in self.federated_workbook.sheets:
            if sheet.slug == slug:
                return sheet
        return None


def load_config_from_file(path: str, env: Optional[str] = None) -> FederateConfig:
    """
    Load and parse a federation configuration from YAML.

    Args:
        path: Path to YAML file
        env: Optional environment override block to apply

    Returns:
        FederateConfig (not yet validated for references; see validate_config)
    """
    from federate.utils import load_yaml_with_env

    config_dict = load_yaml_with_env(path, env=env)
    return FederateConfig.model_validate(config_dict)
