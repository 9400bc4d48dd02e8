"""federate - Re-project source sheet records into a federated workbook."""

__version__ = "0.1.0"

from federate.config import FederateConfig, load_config_from_file
from federate.exceptions import ConfigValidationError, FederateException, FederationJobError
from federate.manager import FederatedSheetManager, LiveSheet

__all__ = [
    "FederateConfig",
    "load_config_from_file",
    "FederatedSheetManager",
    "LiveSheet",
    "FederateException",
    "ConfigValidationError",
    "FederationJobError",
    "__version__",
]


# The job driver is imported on demand
def __getattr__(name):
    if name == "FederationJob":
        from federate.job import FederationJob

        return FederationJob
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
