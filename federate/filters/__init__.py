from federate.filters.record_filter import filter_records, should_include_record

__all__ = ["filter_records", "should_include_record"]
