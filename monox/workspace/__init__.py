"""Workspace analysis: manifest scanning, dependency graph, stage planning."""

from monox.workspace.analyzer import WorkspaceAnalyzer
from monox.workspace.models import AnalysisResult, AnalysisStatistics, DependencyKind, Package
from monox.workspace.scanner import scan

__all__ = [
    "AnalysisResult",
    "AnalysisStatistics",
    "DependencyKind",
    "Package",
    "WorkspaceAnalyzer",
    "scan",
]
