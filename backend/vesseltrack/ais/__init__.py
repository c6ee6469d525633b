"""AIS data processing module for VesselTrack.

This module provides:
- Source-agnostic position report representation
- Upstream adapters (Telkomsat)
- The collector that polls upstream and feeds reconciliation
- Reconciliation of reports into current state and the archive log
- Geographic/temporal query building and the read-side query service
"""

from vesseltrack.ais.models import (
    DataType,
    PositionReport,
    nav_status_name,
    vessel_type_name,
)
from vesseltrack.ais.adapters.base import (
    AISDataAdapter,
    AISDataFetchError,
    SourceInfo,
)
from vesseltrack.ais.query_builder import (
    AreaQuery,
    AreaQueryError,
    BoundingBox,
    VesselFilter,
)
from vesseltrack.ais.reconciler import (
    ReconcileResult,
    VesselReconciler,
)
from vesseltrack.ais.collector import (
    CollectionInProgressError,
    CollectionResult,
    VesselCollector,
)
from vesseltrack.ais.query_service import (
    VesselNotFoundError,
    VesselQueryService,
)

__all__ = [
    # Models
    "DataType",
    "PositionReport",
    "nav_status_name",
    "vessel_type_name",
    # Adapters
    "AISDataAdapter",
    "AISDataFetchError",
    "SourceInfo",
    # Queries
    "AreaQuery",
    "AreaQueryError",
    "BoundingBox",
    "VesselFilter",
    "VesselNotFoundError",
    "VesselQueryService",
    # Reconciliation
    "ReconcileResult",
    "VesselReconciler",
    # Collection
    "CollectionInProgressError",
    "CollectionResult",
    "VesselCollector",
]
