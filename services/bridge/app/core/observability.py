from starlette_exporter import PrometheusMiddleware, handle_metrics

from .metrics import metrics


def add_prometheus(app, app_name: str = "bridge") -> None:
    app.add_middleware(
        PrometheusMiddleware,
        app_name=app_name,
        prefix=app_name,
        group_paths=True,
    )
    app.add_route("/metrics", handle_metrics)

    # Loop counters live in the default registry; expose them on app.state for handlers
    app.state.metrics = metrics
