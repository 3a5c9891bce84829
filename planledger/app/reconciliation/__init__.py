"""Cross-store drift detection."""

from .models import DriftCase, DriftKind, DriftReport
from .service import ReconciliationReader, latest_active_by_subject

__all__ = ["DriftCase", "DriftKind", "DriftReport", "ReconciliationReader", "latest_active_by_subject"]
