from __future__ import annotations

from flask import Flask

from ..common.http import current_actor, json_body, login_required, query_arg, respond
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.get("/api/schedules", endpoint="list_schedules")
    @login_required
    def list_schedules():
        return respond(container.schedule_service.list_schedules(status=query_arg("status")))

    @app.post("/api/schedules", endpoint="create_schedule")
    @login_required
    def create_schedule():
        return respond(container.schedule_service.create_schedule(current_actor(), json_body()), 201)

    @app.get("/api/schedules/<int:schedule_id>", endpoint="get_schedule")
    @login_required
    def get_schedule(schedule_id: int):
        return respond(container.schedule_service.get_schedule(schedule_id))

    @app.patch("/api/schedules/<int:schedule_id>", endpoint="update_schedule")
    @login_required
    def update_schedule(schedule_id: int):
        return respond(container.schedule_service.update_schedule(current_actor(), schedule_id, json_body()))
