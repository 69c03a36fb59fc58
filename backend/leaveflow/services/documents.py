# ruff: noqa: TC003
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass
class DocumentSignature:
    actor_id: uuid.UUID
    role: str
    signature: str


@dataclass
class GeneratedDocument:
    id: str
    request_id: uuid.UUID
    template_id: str
    signatures: list[DocumentSignature] = field(default_factory=list)


@runtime_checkable
class DocumentPipeline(Protocol):
    """Interface for the form-document generation service.

    Binary formats are the pipeline's concern; this side only tracks
    document ids and asks for signatures to be stamped.
    """

    async def generate_document(self, request_id: uuid.UUID, template_id: str) -> str:
        """Render a document for the request and return its id."""
        ...

    async def find_document(self, request_id: uuid.UUID) -> str | None:
        """Return the id of the request's document, if one was generated."""
        ...

    async def add_signature(self, document_id: str, actor_id: uuid.UUID, role: str, signature: str) -> None:
        """Stamp a signature (or a textual approval marker) onto a document."""
        ...


class InMemoryDocumentPipeline:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self.documents: dict[str, GeneratedDocument] = {}

    async def generate_document(self, request_id: uuid.UUID, template_id: str) -> str:
        document_id = f"doc-{uuid.uuid4().hex[:12]}"
        self.documents[document_id] = GeneratedDocument(id=document_id, request_id=request_id, template_id=template_id)
        return document_id

    async def find_document(self, request_id: uuid.UUID) -> str | None:
        for document in self.documents.values():
            if document.request_id == request_id:
                return document.id
        return None

    async def add_signature(self, document_id: str, actor_id: uuid.UUID, role: str, signature: str) -> None:
        document = self.documents.get(document_id)
        if document is None:
            msg = f"Unknown document {document_id}"
            raise KeyError(msg)
        document.signatures.append(DocumentSignature(actor_id=actor_id, role=role, signature=signature))


_document_pipeline: DocumentPipeline = InMemoryDocumentPipeline()


def get_document_pipeline() -> DocumentPipeline:
    """FastAPI dependency for the document pipeline."""
    return _document_pipeline


def set_document_pipeline(pipeline: DocumentPipeline) -> None:
    """Override the pipeline (for testing or production wiring)."""
    global _document_pipeline
    _document_pipeline = pipeline
