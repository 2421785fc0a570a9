from __future__ import annotations

from flask import Flask

from ..common.http import current_actor, json_body, login_required, query_arg, respond
from ..container import Container


def register(app: Flask, container: Container) -> None:
    templates = container.shift_template_service
    shifts = container.shift_service
    assignments = container.assignment_service

    @app.get("/api/shift-templates", endpoint="list_shift_templates")
    @login_required
    def list_shift_templates():
        return respond(templates.list_templates())

    @app.post("/api/shift-templates", endpoint="create_shift_template")
    @login_required
    def create_shift_template():
        return respond(templates.create_template(current_actor(), json_body()), 201)

    @app.patch("/api/shift-templates/<int:template_id>", endpoint="update_shift_template")
    @login_required
    def update_shift_template(template_id: int):
        return respond(templates.update_template(current_actor(), template_id, json_body()))

    @app.delete("/api/shift-templates/<int:template_id>", endpoint="delete_shift_template")
    @login_required
    def delete_shift_template(template_id: int):
        templates.delete_template(current_actor(), template_id)
        return "", 204

    @app.get("/api/shifts", endpoint="list_shifts")
    @login_required
    def list_shifts():
        return respond(
            shifts.list_shifts(
                schedule_id=query_arg("scheduleId"),
                status=query_arg("status"),
                starts_from=query_arg("from"),
                starts_before=query_arg("to"),
            )
        )

    @app.post("/api/shifts", endpoint="create_shift")
    @login_required
    def create_shift():
        return respond(shifts.create_shift(current_actor(), json_body()), 201)

    @app.post("/api/shifts/sync-status", endpoint="sync_shift_status")
    @login_required
    def sync_shift_status():
        moved = shifts.sync_started_shifts(current_actor())
        return respond({"updated": moved})

    @app.get("/api/shifts/<int:shift_id>", endpoint="get_shift")
    @login_required
    def get_shift(shift_id: int):
        return respond(shifts.get_shift(shift_id))

    @app.patch("/api/shifts/<int:shift_id>", endpoint="update_shift")
    @login_required
    def update_shift(shift_id: int):
        return respond(shifts.update_shift(current_actor(), shift_id, json_body()))

    @app.delete("/api/shifts/<int:shift_id>", endpoint="delete_shift")
    @login_required
    def delete_shift(shift_id: int):
        shifts.delete_shift(current_actor(), shift_id)
        return "", 204

    @app.post("/api/shifts/<int:shift_id>/status", endpoint="change_shift_status")
    @login_required
    def change_shift_status(shift_id: int):
        return respond(shifts.change_status(current_actor(), shift_id, json_body().get("status")))

    @app.post("/api/shifts/<int:shift_id>/assign", endpoint="assign_shift")
    @login_required
    def assign_shift(shift_id: int):
        data = json_body()
        assignment = assignments.create_assignment(current_actor(), shift_id, data.get("userId"), data.get("notes"))
        return respond(assignment, 201)

    @app.get("/api/shift-assignments", endpoint="list_shift_assignments")
    @login_required
    def list_shift_assignments():
        return respond(
            assignments.list_assignments(
                current_actor(), shift_id=query_arg("shiftId"), user_id=query_arg("userId")
            )
        )

    @app.post("/api/shift-assignments/<int:assignment_id>/accept", endpoint="accept_assignment")
    @login_required
    def accept_assignment(assignment_id: int):
        return respond(assignments.accept(current_actor(), assignment_id))

    @app.post("/api/shift-assignments/<int:assignment_id>/reject", endpoint="reject_assignment")
    @login_required
    def reject_assignment(assignment_id: int):
        return respond(assignments.reject(current_actor(), assignment_id))

    @app.post("/api/shift-assignments/<int:assignment_id>/complete", endpoint="complete_assignment")
    @login_required
    def complete_assignment(assignment_id: int):
        return respond(assignments.complete(current_actor(), assignment_id))
