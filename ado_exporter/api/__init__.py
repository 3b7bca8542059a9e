"""
HTTP surface - /metrics, /healthz, /readyz

Usage:
    from ado_exporter.api.app import create_app

    app = create_app(registry, scheduler=scheduler, client=client)
"""
