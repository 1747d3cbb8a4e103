"""MonoX: workspace orchestration for JavaScript monorepos."""

from monox.core.config import MonoxConfig, RuntimeOverrides, load_config
from monox.exceptions import MonoxError
from monox.orchestrator import WorkspaceOrchestrator
from monox.scheduler import AsyncTaskScheduler, SchedulerConfig, TaskResult
from monox.workspace import AnalysisResult, Package, WorkspaceAnalyzer

__version__ = "0.1.0"

__all__ = [
    "AnalysisResult",
    "AsyncTaskScheduler",
    "MonoxConfig",
    "MonoxError",
    "Package",
    "RuntimeOverrides",
    "SchedulerConfig",
    "TaskResult",
    "WorkspaceAnalyzer",
    "WorkspaceOrchestrator",
    "load_config",
]
