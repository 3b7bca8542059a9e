"""
Azure DevOps Exporter

Polls the Azure DevOps REST API on independent schedules and republishes the
results in the Prometheus text exposition format.

Package Structure:
    - core: Infrastructure (logging, errors, registry, self-observability)
    - domain: Domain models (resources, metric batches)
    - collectors: REST client, discovery, scheduler and metric plug-ins
    - api: HTTP surface (/metrics, /healthz, /readyz)
    - utils: Shared helpers (durations, timestamps, recency caps)
"""

__version__ = "2.0.0"
__author__ = "Engineering Metrics Team"
