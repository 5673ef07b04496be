"""Application services for RowSandbox."""

from rowsandbox.application.services.backup_manager import BackupManager
from rowsandbox.application.services.commit_orchestrator import CommitOrchestrator
from rowsandbox.application.services.overlay_view import OverlayView
from rowsandbox.application.services.sandbox_service import SandboxService
from rowsandbox.application.services.sandbox_store import SandboxStore

__all__ = [
    "BackupManager",
    "CommitOrchestrator",
    "OverlayView",
    "SandboxService",
    "SandboxStore",
]
