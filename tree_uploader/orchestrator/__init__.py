"""Orchestrator package - coordinates batch upload workflows."""
from .core import UploadOrchestrator
from .models import BatchUploadResult
from .process import BatchUploadProcess, ProcessState

__all__ = ["UploadOrchestrator", "BatchUploadResult", "BatchUploadProcess", "ProcessState"]
