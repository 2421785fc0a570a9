from __future__ import annotations

from flask import Flask

from ..common.http import current_actor, json_body, login_required, query_arg, respond
from ..container import Container
from .model import PHI_FIELD


def register(app: Flask, container: Container) -> None:
    service = container.document_service

    @app.get("/api/documents", endpoint="list_documents")
    @login_required
    def list_documents():
        documents = service.list_documents(
            current_actor(),
            user_id=query_arg("userId"),
            status=query_arg("status"),
        )
        return respond(documents, exclude=(PHI_FIELD,))

    @app.post("/api/documents", endpoint="create_document")
    @login_required
    def create_document():
        return respond(service.create_document(current_actor(), json_body()), 201)

    @app.get("/api/documents/<int:document_id>", endpoint="get_document")
    @login_required
    def get_document(document_id: int):
        return respond(service.get_document(current_actor(), document_id))

    @app.post("/api/documents/<int:document_id>/approve", endpoint="approve_document")
    @login_required
    def approve_document(document_id: int):
        return respond(service.approve(current_actor(), document_id, json_body().get("notes")))

    @app.post("/api/documents/<int:document_id>/reject", endpoint="reject_document")
    @login_required
    def reject_document(document_id: int):
        return respond(service.reject(current_actor(), document_id, json_body().get("notes")))
