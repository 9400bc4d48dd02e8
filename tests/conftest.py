import logging

import pytest


class RecordingTracer:
    """Tracer that keeps every call for assertions."""

    def __init__(self):
        self.traces = []
        self.warnings = []

    def trace(self, component, message, **context):
        self.traces.append((component, message, context))

    def warn(self, component, message, **context):
        self.warnings.append((component, message, context))

    def warning_messages(self, component=None):
        return [m for c, m, _ in self.warnings if component is None or c == component]


@pytest.fixture(autouse=True)
def configure_logging():
    """Configure logging to avoid Rich Text object issues in tests."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if "Rich" in handler.__class__.__name__:
            root.removeHandler(handler)
    # Set to WARNING level to reduce noise in tests
    logging.basicConfig(level=logging.WARNING, format="%(message)s", force=True)
    yield
    logging.basicConfig(level=logging.INFO, force=True)


@pytest.fixture
def tracer():
    return RecordingTracer()


@pytest.fixture
def orders_config():
    """Two source sheets feeding one standard sheet with a virtual field."""
    return {
        "source_workbook_name": "Company Data",
        "federated_workbook": {
            "name": "Federated Views",
            "sheets": [
                {
                    "slug": "order_totals",
                    "name": "Order Totals",
                    "fields": [
                        {
                            "key": "order_id",
                            "federate_config": {
                                "source_sheet_slug": "orders",
                                "source_field_key": "id",
                            },
                        },
                        {
                            "key": "total",
                            "type": "number",
                            "federate_config": {
                                "source_sheet_slug": "orders",
                                "source_field_key": "amount",
                            },
                        },
                    ],
                    "virtualFields": [
                        {
                            "key": "status",
                            "federate_config": {
                                "source_sheet_slug": "orders",
                                "source_field_key": "status",
                            },
                        }
                    ],
                    "field_values_excluded": {"status": ["cancelled"]},
                }
            ],
        },
    }
