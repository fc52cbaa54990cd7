"""Schema package for external and internal contracts."""

from .requests import ObservedLumisections, RunCreateRequest, RunEditRequest, RunFilterRequest
from .responses import DatasetView, LumisectionEventView, RunView

__all__ = [
    "DatasetView",
    "LumisectionEventView",
    "ObservedLumisections",
    "RunCreateRequest",
    "RunEditRequest",
    "RunFilterRequest",
    "RunView",
]
