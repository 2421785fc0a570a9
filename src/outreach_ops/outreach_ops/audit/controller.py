from __future__ import annotations

from flask import Flask

from ..common.http import current_actor, login_required, query_arg, respond
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.get("/api/audit-logs", endpoint="audit_logs")
    @login_required
    def audit_logs():
        logs = container.audit_log_service.list_logs(
            current_actor(),
            user_id=query_arg("userId"),
            resource_type=query_arg("resourceType"),
            limit=query_arg("limit"),
        )
        return respond(logs)
