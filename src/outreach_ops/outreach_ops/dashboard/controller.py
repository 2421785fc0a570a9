from __future__ import annotations

from flask import Flask

from ..common.http import current_actor, login_required, respond
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.get("/api/dashboard/counts", endpoint="dashboard_counts")
    @login_required
    def dashboard_counts():
        return respond(container.dashboard_service.counts(current_actor()))
