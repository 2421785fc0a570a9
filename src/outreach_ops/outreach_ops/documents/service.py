from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, ContextManager, Mapping, Optional, Sequence

from ..audit.service import AuditTrail
from ..common.datetime_utils import utc_now
from ..common.validators import FieldErrors, optional_datetime, optional_str, parse_int, require_enum, require_non_empty
from ..core.actor import Actor
from ..core.constants import DOCUMENT_EXPIRY_WARNING_DAYS
from ..core.enums import DocumentStatus
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError
from ..core.permissions import Action, can, require
from ..users.repository import UserRepository
from .expiry import effective_document_status
from .model import Document
from .repository import DocumentRepository

logger = logging.getLogger(__name__)


class DocumentService:
    """Use cases: credential documents and their review.

    Every document returned carries `effective_status` computed for the
    current time; filtering by status uses that derived value.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        users: UserRepository,
        audit: AuditTrail,
        transaction: Callable[[], ContextManager],
        *,
        clock: Callable = utc_now,
        warning_days: int = DOCUMENT_EXPIRY_WARNING_DAYS,
    ):
        self._documents = documents
        self._users = users
        self._audit = audit
        self._tx = transaction
        self._clock = clock
        self._warning_days = int(warning_days)

    def _derive(self, document: Document, now=None) -> Document:
        now = now or self._clock()
        return replace(
            document,
            effective_status=effective_document_status(
                document.status, document.expiry_date, now, self._warning_days
            ),
        )

    def _get(self, document_id: int, *, for_update: bool = False) -> Document:
        document = self._documents.get_by_id(document_id, for_update=for_update)
        if not document:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    def get_document(self, actor: Actor, document_id: int) -> Document:
        document = self._get(document_id)
        if document.user_id != actor.user_id:
            require(actor.role, Action.DOCUMENTS_VIEW_ALL)
        if document.metadata:
            with self._tx():
                self._audit.record(
                    action="document_viewed",
                    resource_type="document",
                    resource_id=document_id,
                    actor=actor,
                    phi_fields=[f"metadata.{k}" for k in document.metadata],
                )
        return self._derive(document)

    def list_documents(
        self,
        actor: Actor,
        *,
        user_id: Any = None,
        status: Optional[str] = None,
    ) -> Sequence[Document]:
        uid = parse_int(user_id, "userId", min_value=1) if user_id is not None else None
        wanted = require_enum(status, DocumentStatus, "status") if status else None
        if not can(actor.role, Action.DOCUMENTS_VIEW_ALL):
            if uid is not None and uid != actor.user_id:
                raise AuthorizationError("You can only view your own documents")
            uid = actor.user_id

        now = self._clock()
        documents = [self._derive(d, now) for d in self._documents.list(user_id=uid)]
        if wanted:
            documents = [d for d in documents if d.effective_status == wanted]
        return documents

    def create_document(self, actor: Actor, data: Mapping[str, Any]) -> Document:
        errors = FieldErrors()
        owner_id = (
            errors.check(parse_int, data["userId"], "userId", min_value=1)
            if data.get("userId") is not None
            else actor.user_id
        )
        title = errors.check(require_non_empty, data.get("title"), "title")
        file_url = errors.check(require_non_empty, data.get("fileUrl"), "fileUrl")
        description = errors.check(optional_str, data.get("description"), "description")
        file_type = errors.check(optional_str, data.get("fileType"), "fileType")
        category = errors.check(optional_str, data.get("category"), "category")
        expiry = errors.check(optional_datetime, data.get("expiryDate"), "expiryDate")
        notes = errors.check(optional_str, data.get("notes"), "notes")
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            errors.add("metadata", "must be an object")
        errors.raise_if_any()

        if owner_id != actor.user_id and not can(actor.role, Action.DOCUMENTS_APPROVE):
            raise AuthorizationError("You can only upload your own documents")
        if not self._users.get_by_id(owner_id):
            raise NotFoundError(f"User {owner_id} not found")

        now = self._clock()
        document = Document(
            id=0,
            user_id=owner_id,
            title=title,
            description=description,
            file_url=file_url,
            file_type=file_type,
            category=category,
            metadata=dict(metadata),
            status=DocumentStatus.SUBMITTED,
            uploaded_date=now,
            expiry_date=expiry,
            notes=notes,
        )
        with self._tx():
            document_id = self._documents.create(document)
            self._audit.record(
                action="document_uploaded",
                resource_type="document",
                resource_id=document_id,
                actor=actor,
                phi_fields=[f"metadata.{k}" for k in metadata],
                details={"userId": owner_id, "category": category},
            )
        logger.info("Document %s uploaded for user %s", document_id, owner_id)
        return self._derive(self._get(document_id))

    def _review(self, actor: Actor, document_id: int, target: DocumentStatus, notes: Any) -> Document:
        require(actor.role, Action.DOCUMENTS_APPROVE)
        note = optional_str(notes, "notes")
        now = self._clock()
        with self._tx():
            document = self._get(document_id, for_update=True)
            if document.status != DocumentStatus.SUBMITTED:
                raise ConflictError(
                    f"Invalid document status transition: {document.status.value} -> {target.value}"
                )
            if target == DocumentStatus.APPROVED and document.expiry_date and document.expiry_date < now:
                raise ConflictError("Document has expired and cannot be approved")
            approve = target == DocumentStatus.APPROVED
            if not self._documents.set_status(
                document_id,
                target,
                expected=DocumentStatus.SUBMITTED,
                approved_by=actor.user_id if approve else None,
                approved_at=now if approve else None,
                notes=note,
            ):
                raise ConflictError("Document changed concurrently; retry")
            self._audit.record(
                action=f"document_{target.value}",
                resource_type="document",
                resource_id=document_id,
                actor=actor,
            )
        logger.info("Document %s %s by %s", document_id, target.value, actor.user_id)
        return self._derive(self._get(document_id))

    def approve(self, actor: Actor, document_id: int, notes: Any = None) -> Document:
        return self._review(actor, document_id, DocumentStatus.APPROVED, notes)

    def reject(self, actor: Actor, document_id: int, notes: Any = None) -> Document:
        return self._review(actor, document_id, DocumentStatus.REJECTED, notes)
