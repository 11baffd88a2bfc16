"""Push notification fan-out: audience resolution, target selection, dispatch and history."""
from __future__ import annotations

from pushfanout.models import OperationResult
from pushfanout.service import NotificationService

__version__ = "0.1.0"

__all__ = ["NotificationService", "OperationResult", "__version__"]
