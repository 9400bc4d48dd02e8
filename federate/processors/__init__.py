from federate.processors.merge_processor import merge_records
from federate.processors.record_processor import create_standard_record, process_record
from federate.processors.unpivot_processor import create_unpivoted_records

__all__ = [
    "merge_records",
    "create_standard_record",
    "process_record",
    "create_unpivoted_records",
]
