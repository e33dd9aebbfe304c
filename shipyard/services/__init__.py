"""Release pipeline services.

Services implement the pipeline phases, coordinating between the domain
layer (core/) and external collaborators (toolchain, gh, docker).
"""

from shipyard.services.pipeline import Pipeline, RunSummary
from shipyard.services.version import Version

__all__ = [
    "Pipeline",
    "RunSummary",
    "Version",
]
