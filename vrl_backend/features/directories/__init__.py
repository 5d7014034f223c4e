from .models import (
    AdmissionResult,
    BuiltTree,
    DirectoryListingEntry,
    DirectoryTreeNode,
    Rejection,
    RejectionReason,
    SyncFailure,
    SyncReport,
    TreeDiagnostic,
)
from .registry import WatchedDirectoryRegistry
from .selection import SelectionProjector, SelectionSet
from .service import WatchedDirectoriesService
from .sync import SyncReconciler
from .tree_builder import DirectoryTreeBuilder

__all__ = [
    "AdmissionResult",
    "BuiltTree",
    "DirectoryListingEntry",
    "DirectoryTreeBuilder",
    "DirectoryTreeNode",
    "Rejection",
    "RejectionReason",
    "SelectionProjector",
    "SelectionSet",
    "SyncFailure",
    "SyncReconciler",
    "SyncReport",
    "TreeDiagnostic",
    "WatchedDirectoriesService",
    "WatchedDirectoryRegistry",
]
