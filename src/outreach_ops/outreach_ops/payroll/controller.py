from __future__ import annotations

from flask import Flask

from ..common.datetime_utils import utc_now
from ..common.http import current_actor, json_body, login_required, query_arg, respond
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.timesheet_service

    @app.get("/api/timesheets", endpoint="list_timesheets")
    @login_required
    def list_timesheets():
        return respond(service.list_timesheets(current_actor(), user_id=query_arg("userId"), status=query_arg("status")))

    @app.post("/api/timesheets", endpoint="generate_timesheet")
    @login_required
    def generate_timesheet():
        data = json_body()
        actor = current_actor()
        ts = service.generate(actor, data.get("userId", actor.user_id), data.get("periodStart"), data.get("periodEnd"))
        return respond(ts, 201)

    @app.get("/api/timesheets/<int:timesheet_id>", endpoint="get_timesheet")
    @login_required
    def get_timesheet(timesheet_id: int):
        return respond(service.get_timesheet(current_actor(), timesheet_id))

    @app.post("/api/timesheets/<int:timesheet_id>/submit", endpoint="submit_timesheet")
    @login_required
    def submit_timesheet(timesheet_id: int):
        return respond(service.submit(current_actor(), timesheet_id, json_body().get("notes")))

    @app.post("/api/timesheets/<int:timesheet_id>/approve", endpoint="approve_timesheet")
    @login_required
    def approve_timesheet(timesheet_id: int):
        return respond(service.approve(current_actor(), timesheet_id, json_body().get("notes")))

    @app.post("/api/timesheets/<int:timesheet_id>/reject", endpoint="reject_timesheet")
    @login_required
    def reject_timesheet(timesheet_id: int):
        return respond(service.reject(current_actor(), timesheet_id, json_body().get("notes")))

    @app.post("/api/timesheets/export", endpoint="export_timesheets")
    @login_required
    def export_timesheets():
        csv_text, exported = service.export(current_actor(), json_body().get("timesheetIds"))
        filename = f"timesheets_{utc_now().strftime('%Y%m%d_%H%M%S')}.csv"
        return app.response_class(
            csv_text.encode("utf-8-sig"),
            mimetype="text/csv",
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "X-Exported-Count": str(len(exported)),
            },
        )
