from __future__ import annotations

from flask import Flask

from ..common.http import current_actor, json_body, login_required, query_arg, respond
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.time_clock_service

    @app.post("/api/time/clock-in", endpoint="clock_in")
    @login_required
    def clock_in():
        return respond(service.clock_in(current_actor(), json_body()), 201)

    @app.post("/api/time/clock-out", endpoint="clock_out")
    @login_required
    def clock_out():
        return respond(service.clock_out(current_actor(), json_body()))

    @app.get("/api/time/active", endpoint="active_time_entry")
    @login_required
    def active_time_entry():
        return respond(service.active_entry(current_actor()))

    @app.get("/api/time/entries", endpoint="list_time_entries")
    @login_required
    def list_time_entries():
        return respond(
            service.list_entries(
                current_actor(),
                user_id=query_arg("userId"),
                clock_in_from=query_arg("from"),
                clock_in_before=query_arg("to"),
            )
        )

    @app.get("/api/time/entries/<int:entry_id>", endpoint="get_time_entry")
    @login_required
    def get_time_entry(entry_id: int):
        return respond(service.get_entry(current_actor(), entry_id))

    @app.patch("/api/time/entries/<int:entry_id>", endpoint="update_time_entry")
    @login_required
    def update_time_entry(entry_id: int):
        return respond(service.update_entry(current_actor(), entry_id, json_body()))

    @app.post("/api/time/entries/<int:entry_id>/attachments", endpoint="add_time_entry_attachments")
    @login_required
    def add_time_entry_attachments(entry_id: int):
        files = json_body().get("shiftNoteAttachments")
        return respond(service.add_attachments(current_actor(), entry_id, files))

    @app.post("/api/time/entries/lock", endpoint="lock_time_entries")
    @login_required
    def lock_time_entries():
        return respond(service.lock_entries(current_actor(), json_body().get("entryIds")))

    @app.post("/api/time/entries/<int:entry_id>/unlock", endpoint="unlock_time_entry")
    @login_required
    def unlock_time_entry(entry_id: int):
        return respond(service.unlock_entry(current_actor(), entry_id))

    @app.post("/api/time/auto-clock-out", endpoint="auto_clock_out")
    @login_required
    def auto_clock_out():
        closed = service.auto_clock_out(current_actor(), max_hours=json_body().get("maxHours"))
        return respond({"closed": closed})
