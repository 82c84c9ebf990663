"""
Document Checklist

Which documents may be uploaded, which are required before submission,
and the per-type upload constraints. health_certificate is accepted but
not required.
"""

from dataclasses import dataclass
from typing import Any

from admissions.modules.registrations.models import DocumentType
from admissions.modules.shared.errors import RegistrationValidationError

REQUIRED_DOCUMENTS: tuple[DocumentType, ...] = (
    DocumentType.BIRTH_CERTIFICATE,
    DocumentType.FAMILY_CARD,
    DocumentType.PREVIOUS_DIPLOMA,
    DocumentType.PHOTO,
)

ACCEPTED_DOCUMENTS: tuple[DocumentType, ...] = REQUIRED_DOCUMENTS + (
    DocumentType.HEALTH_CERTIFICATE,
)

_PDF_OR_IMAGE = frozenset({"application/pdf", "image/jpeg", "image/png"})
_IMAGE_ONLY = frozenset({"image/jpeg", "image/png"})

ALLOWED_MIME_TYPES: dict[DocumentType, frozenset[str]] = {
    DocumentType.BIRTH_CERTIFICATE: _PDF_OR_IMAGE,
    DocumentType.FAMILY_CARD: _PDF_OR_IMAGE,
    DocumentType.PREVIOUS_DIPLOMA: _PDF_OR_IMAGE,
    DocumentType.HEALTH_CERTIFICATE: _PDF_OR_IMAGE,
    DocumentType.PHOTO: _IMAGE_ONLY,
}


@dataclass(frozen=True)
class ChecklistResult:
    complete: bool
    missing: list[str]


def check_documents(documents: dict[str, Any] | None) -> ChecklistResult:
    """
    Evaluate stored documents against REQUIRED_DOCUMENTS.

    A key counts as present only if it maps to a non-empty descriptor.
    Missing keys are reported in REQUIRED_DOCUMENTS order.
    """
    documents = documents or {}
    missing = [doc.value for doc in REQUIRED_DOCUMENTS if not documents.get(doc.value)]
    return ChecklistResult(complete=not missing, missing=missing)


def is_complete(documents: dict[str, Any] | None) -> bool:
    return check_documents(documents).complete


def parse_document_type(value: str) -> DocumentType:
    """Resolve a document type key, rejecting anything outside ACCEPTED_DOCUMENTS."""
    try:
        document_type = DocumentType(value)
    except ValueError as e:
        raise RegistrationValidationError(
            f"Unknown document type '{value}'.",
            errors=[{"field": value, "message": "unknown document type"}],
        ) from e
    if document_type not in ACCEPTED_DOCUMENTS:
        raise RegistrationValidationError(f"Document type '{value}' is not accepted.")
    return document_type


def validate_upload(
    document_type: DocumentType,
    content_type: str | None,
    size: int,
    max_size: int,
) -> None:
    """
    Check one uploaded file against its type's MIME allowlist and the size limit.

    Raises:
        RegistrationValidationError: On a disallowed content type, an empty
            file or an oversized file
    """
    allowed = ALLOWED_MIME_TYPES[document_type]
    if content_type not in allowed:
        raise RegistrationValidationError(
            f"File type {content_type} is not allowed for {document_type.value}.",
            errors=[
                {
                    "field": document_type.value,
                    "message": f"allowed types: {', '.join(sorted(allowed))}",
                }
            ],
        )
    if size <= 0:
        raise RegistrationValidationError(
            f"Uploaded file for {document_type.value} is empty.",
            errors=[{"field": document_type.value, "message": "empty file"}],
        )
    if size > max_size:
        raise RegistrationValidationError(
            f"File for {document_type.value} exceeds the maximum size of {max_size} bytes.",
            errors=[{"field": document_type.value, "message": f"max size {max_size} bytes"}],
        )
