from markerflow.services.container import Services, build_services
from markerflow.services.deletion import CascadeDeletionEngine, DeletionResult, SweepResult
from markerflow.services.pipeline import PipelineService

__all__ = [
    "Services",
    "build_services",
    "PipelineService",
    "CascadeDeletionEngine",
    "DeletionResult",
    "SweepResult",
]
