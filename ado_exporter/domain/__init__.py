"""
Domain Models - Type-safe data structures for resources and metrics

This package contains dataclasses representing exporter concepts:
    - resources: Project, AgentPool, QueryTarget, Organization, ResourceSnapshot
    - metrics: MetricKind, MetricFamily, ApplyCommand, MetricBatch, SeriesTable

Usage:
    from ado_exporter.domain import MetricBatch, Project

    batch = MetricBatch()
    batch.add_info("azure_devops_project_info", {"projectID": project.id})
"""

from .metrics import ApplyCommand, MetricBatch, MetricFamily, MetricKind, SeriesTable
from .resources import AgentPool, Organization, Project, QueryTarget, ResourceSnapshot

__all__ = [
    # Resources
    "Project",
    "AgentPool",
    "QueryTarget",
    "Organization",
    "ResourceSnapshot",
    # Metrics
    "MetricKind",
    "MetricFamily",
    "ApplyCommand",
    "MetricBatch",
    "SeriesTable",
]
