from __future__ import annotations

from flask import Flask, request, session

from ..common.http import current_actor, json_body, login_required, query_arg, respond
from ..common.serialization import to_json
from ..container import Container
from .model import PHI_FIELD, PRIVATE_FIELDS

# List views leave out PHI; the detail view (audited) carries it.
LIST_EXCLUDE = PRIVATE_FIELDS + (PHI_FIELD,)


def register(app: Flask, container: Container) -> None:
    @app.post("/api/auth/login", endpoint="login")
    def login():
        data = json_body()
        user = container.auth_service.authenticate(
            data.get("username", ""),
            data.get("password", ""),
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        session.clear()
        session.permanent = bool(data.get("rememberMe"))
        session["user_id"] = user.id
        session["role"] = user.role.value
        return respond(user, exclude=PRIVATE_FIELDS)

    @app.post("/api/auth/logout", endpoint="logout")
    @login_required
    def logout():
        container.auth_service.logout(current_actor())
        session.clear()
        return respond({"ok": True})

    @app.get("/api/auth/me", endpoint="me")
    @login_required
    def me():
        user = container.user_service.get_user(current_actor(), current_actor().user_id)
        return respond(user, exclude=PRIVATE_FIELDS)

    @app.post("/api/onboarding/complete", endpoint="complete_onboarding")
    def complete_onboarding():
        data = json_body()
        user = container.user_service.complete_onboarding(
            data.get("token"),
            data.get("password"),
            data.get("customFields"),
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return respond(user, exclude=LIST_EXCLUDE)

    @app.get("/api/users", endpoint="list_users")
    @login_required
    def list_users():
        users = container.user_service.list_users(
            current_actor(), status=query_arg("status"), role=query_arg("role")
        )
        return respond(users, exclude=LIST_EXCLUDE)

    @app.post("/api/users", endpoint="create_user")
    @login_required
    def create_user():
        user, link = container.user_service.create_user(current_actor(), json_body())
        return respond({"user": to_json(user, exclude=PRIVATE_FIELDS), "onboardingLink": link}, 201)

    @app.get("/api/users/<int:user_id>", endpoint="get_user")
    @login_required
    def get_user(user_id: int):
        user = container.user_service.get_user(current_actor(), user_id)
        return respond(user, exclude=PRIVATE_FIELDS)

    @app.patch("/api/users/<int:user_id>", endpoint="update_user")
    @login_required
    def update_user(user_id: int):
        user = container.user_service.update_user(current_actor(), user_id, json_body())
        return respond(user, exclude=PRIVATE_FIELDS)

    @app.post("/api/users/<int:user_id>/onboarding-link", endpoint="reissue_onboarding")
    @login_required
    def reissue_onboarding(user_id: int):
        user, link = container.user_service.reissue_onboarding(current_actor(), user_id)
        return respond({"user": to_json(user, exclude=PRIVATE_FIELDS), "onboardingLink": link})
