from .controller import ServiceController, ServiceState
from .naming import NameResolver
from .placement import PlacementEngine
from .sort_loop import SortLoop
from .stability import StabilityTracker, is_stable, scan_directory
from .strategies import PathStrategy, unknown_path
from .types import (
    CandidateFile,
    CycleReport,
    Deferred,
    PermanentFailure,
    Placed,
    PlacementOutcome,
    ResolvedName,
    RoutedUnknown,
    SortableAttributes,
)

__all__ = [
    "CandidateFile",
    "CycleReport",
    "Deferred",
    "NameResolver",
    "PathStrategy",
    "PermanentFailure",
    "Placed",
    "PlacementEngine",
    "PlacementOutcome",
    "ResolvedName",
    "RoutedUnknown",
    "ServiceController",
    "ServiceState",
    "SortLoop",
    "SortableAttributes",
    "StabilityTracker",
    "is_stable",
    "scan_directory",
    "unknown_path",
]
