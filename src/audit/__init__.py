"""
Audit runs: collection plus scoring for one property and window.
"""

from .full_audit import (
    AuditResult,
    assemble_audit,
    default_window,
    fetch_backlink_metrics,
    run_full_audit,
)

__all__ = [
    "AuditResult",
    "assemble_audit",
    "default_window",
    "fetch_backlink_metrics",
    "run_full_audit",
]
