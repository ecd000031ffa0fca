"""Document ingestion pipeline for catalogist.

The pipeline is split into explicit, testable phases: family resolution, candidate
harvesting, schema negotiation, identifier synthesis, admission and persistence.
Each phase operates on an ``IngestRun`` and communicates through a shared
``PipelineContext`` so domain rules remain explicit and adapter-free.
"""

from __future__ import annotations

from .admission import AdmissionGate, AdmissionPhase
from .context import (
    IngestRun,
    IngestServices,
    LearnedStateCache,
    PipelineContext,
    RunDeadline,
)
from .family_resolution import FamilyResolutionPhase, resolve_family
from .harvesting import HarvestPhase
from .identifier_synthesis import IdentifierSynthesisPhase
from .orchestrator import IngestionPipeline, PipelinePhase
from .persistence import PersistencePhase
from .runner import default_pipeline, run_ingest
from .scheduling import InlineScheduler, ThreadedScheduler
from .schema_negotiation import SchemaNegotiationPhase

__all__ = [
    "AdmissionGate",
    "AdmissionPhase",
    "FamilyResolutionPhase",
    "HarvestPhase",
    "IdentifierSynthesisPhase",
    "IngestRun",
    "IngestServices",
    "IngestionPipeline",
    "InlineScheduler",
    "LearnedStateCache",
    "PersistencePhase",
    "PipelineContext",
    "PipelinePhase",
    "RunDeadline",
    "SchemaNegotiationPhase",
    "ThreadedScheduler",
    "default_pipeline",
    "resolve_family",
    "run_ingest",
]
