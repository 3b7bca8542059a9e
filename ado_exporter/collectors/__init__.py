"""
Collectors - Fetch metrics from Azure DevOps

This package contains:
    - ado_rest_client: authenticated, retrying, paginated REST access
    - discovery: periodic project / agent pool enumeration
    - base: plug-in contract and scope variants
    - scheduler: per-collector timers, fan-out and the single-writer apply step
    - one module per metric plug-in (project, agentpool, build, release, ...)
"""

__all__ = []
