"""Durable storage for feature request records."""

from buildplan_orchestrator.persistence.request_store import RequestStore, RequestStoreError

__all__ = [
    "RequestStore",
    "RequestStoreError",
]
