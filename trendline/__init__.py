"""Trendline: staged social-media trend reports delivered over Slack."""

from .config import TrendlineConfig, load_config
from .contracts import Stage, StageCallError, WorkflowState
from .dedup import EventDeduplicator
from .orchestrator import PipelineOrchestrator
from .persistence import get_store
from .recovery import RecoverySweeper
from .security import SignatureVerifier
from .state import WorkflowStateManager

__version__ = "0.1.0"
__all__ = [
    "EventDeduplicator",
    "PipelineOrchestrator",
    "RecoverySweeper",
    "SignatureVerifier",
    "Stage",
    "StageCallError",
    "TrendlineConfig",
    "WorkflowState",
    "WorkflowStateManager",
    "get_store",
    "load_config",
]
