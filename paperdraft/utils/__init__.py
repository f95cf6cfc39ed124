"""Shared utility functions and models for the PaperDraft application.

This package provides convenience re-exports so that consumers can import
directly from ``paperdraft.utils`` (e.g. ``from paperdraft.utils import
log_audit_event``) while full absolute imports remain supported.
"""

from paperdraft.utils.audit import AuditEvent, log_audit_event

__all__ = [
    "AuditEvent",
    "log_audit_event",
]
