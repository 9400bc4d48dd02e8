"""Federation job driver.

Runs one federation pass end to end against a platform. All platform calls go
through ``PlatformClient``; this module holds no network code.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from federate.config import FederateConfig
from federate.exceptions import FederationJobError
from federate.manager import FederatedSheetManager
from federate.records import OutputRecord
from federate.utils.tracing import Tracer, tracer_for

COMPONENT = "FederationJob"

PAGE_SIZE = 10_000


class PlatformClient(Protocol):
    """Platform operations needed by a federation job.

    Sheets are returned as objects or mappings carrying ``id``, ``slug`` and
    optionally ``name``. Records are ``{"id": ..., "values": {...}}``.
    """

    def ack(self, job_id: str, progress: int, info: str) -> None: ...

    def complete(self, job_id: str, message: str) -> None: ...

    def fail(self, job_id: str, message: str) -> None: ...

    def get_workbook_sheets(self, workbook_id: str) -> Sequence[Any]: ...

    def list_workbooks(self, space_id: str, name: str) -> Sequence[str]:
        """Return ids of the workbooks named ``name`` in the space."""
        ...

    def delete_workbook(self, workbook_id: str) -> None: ...

    def create_workbook(self, space_id: str, workbook_config: Dict[str, Any]) -> Sequence[Any]:
        """Create a workbook and return its sheets."""
        ...

    def get_records(self, sheet_id: str, page_number: int, page_size: int) -> Sequence[Any]: ...

    def insert_records(self, sheet_id: str, records: List[OutputRecord]) -> None: ...

    def create_action(self, space_id: str, action: Dict[str, Any]) -> None: ...


@dataclass
class JobResult:
    """Outcome of a federation job."""

    job_id: str
    success: bool = False
    progress: int = 0
    source_sheets: List[str] = field(default_factory=list)
    records_read: Dict[str, int] = field(default_factory=dict)
    records_inserted: Dict[str, int] = field(default_factory=dict)
    deleted_workbooks: List[str] = field(default_factory=list)
    error: Optional[str] = None


def _attr(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


class FederationJob:
    """
    Drives a ``FederatedSheetManager`` through one federation pass.

    The manager is built (and the configuration validated) in the constructor,
    so an invalid configuration raises before any platform call.
    """

    def __init__(
        self,
        config: Union[FederateConfig, Mapping[str, Any]],
        client: PlatformClient,
        tracer: Optional[Tracer] = None,
    ):
        if not isinstance(config, FederateConfig):
            config = FederateConfig.model_validate(dict(config))
        self.config = config
        self.client = client
        self.tracer = tracer or tracer_for(config)
        self.manager = FederatedSheetManager(config, self.tracer)

        self.tracer.trace(
            COMPONENT,
            f"Federated workbook name: {config.federated_workbook.name}",
        )

    @property
    def operation(self) -> str:
        return self.config.operation

    def attach_action(self, workbook_id: str, workbook_name: str, space_id: str) -> bool:
        """
        Attach the federate action to a newly created workbook if it is the source workbook.

        Returns:
            True when the action was created
        """
        if workbook_name != self.config.source_workbook_name:
            self.tracer.trace(
                COMPONENT, f'Skipping creation of federate action for workbook "{workbook_name}"'
            )
            return False

        self.client.create_action(
            space_id, self.config.action.to_payload(workbook_id, self.operation)
        )
        self.tracer.trace(COMPONENT, f'Federate action created for workbook "{workbook_name}"')
        return True

    def run(self, job_id: str, workbook_id: str, space_id: str) -> JobResult:
        """
        Federate the source workbook ``workbook_id`` into a fresh federated workbook.

        Failures are reported to the platform with ``client.fail`` and returned
        in ``JobResult.error``; they are not re-raised.
        """
        result = JobResult(job_id=job_id)
        self.tracer.trace(
            COMPONENT,
            f"Federation job started: {job_id} for workbook: {workbook_id} in space: {space_id}",
        )
        self.client.ack(job_id, 0, "Starting federation")

        def update_progress(info: str, increment: int) -> None:
            result.progress = min(result.progress + increment, 100)
            self.tracer.trace(COMPONENT, f"Progress update: {info} - {result.progress}%")
            self.client.ack(job_id, result.progress, info)

        try:
            update_progress("Retrieving source data", 5)
            source_sheets = [
                sheet
                for sheet in self.client.get_workbook_sheets(workbook_id) or []
                if self.manager.has_source_sheet(_attr(sheet, "slug"))
            ]
            result.source_sheets = [_attr(sheet, "slug") for sheet in source_sheets]
            self.tracer.trace(
                COMPONENT,
                f"Found {len(source_sheets)} source sheets in workbook {workbook_id}",
                sheets=result.source_sheets,
            )
            if not source_sheets:
                raise FederationJobError("No source sheets found", job_id=job_id)

            update_progress("Deleting existing federated workbooks", 10)
            workbook_name = self.config.federated_workbook.name
            for old_id in self.client.list_workbooks(space_id, workbook_name) or []:
                self.tracer.trace(COMPONENT, f"Deleting workbook: {old_id}")
                self.client.delete_workbook(old_id)
                result.deleted_workbooks.append(old_id)

            update_progress("Creating new federated workbook", 10)
            workbook_config = self.config.federated_workbook.model_dump(
                by_alias=True, exclude_none=True
            )
            target_sheets = {
                _attr(sheet, "slug"): sheet
                for sheet in self.client.create_workbook(space_id, workbook_config) or []
            }

            update_progress("Setting up field mappings", 10)
            self.manager.clear_mappings()
            for blueprint in self.config.federated_workbook.sheets:
                target = target_sheets.get(blueprint.slug)
                if target is None:
                    raise FederationJobError(
                        f'Target sheet "{blueprint.slug}" was not created in the federated workbook',
                        job_id=job_id,
                    )
                self.manager.create_mappings(blueprint, target)

            update_progress("Processing source records", 15)
            for sheet in source_sheets:
                slug = _attr(sheet, "slug")
                result.records_read[slug] = self._load_source_records(_attr(sheet, "id"), slug)

            update_progress("Inserting records into target sheets", 20)
            for sheet_id, records in self.manager.get_records().items():
                if not records:
                    self.tracer.warn(COMPONENT, f"No records to insert for sheet {sheet_id}")
                    continue
                self.tracer.trace(COMPONENT, f"Inserting {len(records)} records into sheet {sheet_id}")
                self.client.insert_records(sheet_id, records)
                result.records_inserted[sheet_id] = len(records)

            update_progress("Finalizing federation", 29)
            self.client.complete(job_id, "Federation complete")
            result.success = True
            self.tracer.trace(COMPONENT, f"Successfully completed federation job: {job_id}")

        except Exception as e:
            message = e.message if isinstance(e, FederationJobError) else str(e)
            result.error = message
            self.tracer.warn(COMPONENT, f"Federation job {job_id} failed: {message}")
            self.client.fail(job_id, message)

        return result

    def _load_source_records(self, sheet_id: str, slug: str) -> int:
        """Page through a source sheet, feeding each page to the manager."""
        total = 0
        page_number = 1
        while True:
            page = list(self.client.get_records(sheet_id, page_number, PAGE_SIZE) or [])
            if page:
                self.manager.add_records(slug, page)
                total += len(page)
            if len(page) < PAGE_SIZE:
                break
            page_number += 1

        if total:
            self.tracer.trace(COMPONENT, f"Added {total} records from sheet {slug} to manager")
        else:
            self.tracer.warn(COMPONENT, f"No records found in source sheet: {slug}")
        return total
