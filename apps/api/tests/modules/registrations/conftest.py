"""
Fixtures for registration tests.
"""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from admissions.modules.registrations.checklist import REQUIRED_DOCUMENTS
from admissions.modules.registrations.models import Registration, RegistrationStatus


@pytest.fixture
def personal_data():
    """Valid personal data section."""
    return {
        "full_name": "Ahmad Fauzi",
        "nick_name": "Fauzi",
        "gender": "male",
        "birth_place": "Malang",
        "birth_date": "2013-04-12",
        "religion": "Islam",
        "address": {
            "street": "Jl. Melati No. 5",
            "village": "Sumbersari",
            "district": "Lowokwaru",
            "city": "Malang",
            "postal_code": "65145",
        },
        "phone_number": "081234567890",
        "email": "Ahmad.Fauzi@Example.com",
    }


@pytest.fixture
def parent_data():
    """Valid parent data section."""
    return {
        "father": {"name": "Budi Santoso", "occupation": "Teacher", "phone_number": "0811111111"},
        "mother": {"name": "Siti Aminah", "occupation": "Nurse"},
        "guardian": None,
    }


@pytest.fixture
def academic_data():
    """Valid academic data section."""
    return {
        "previous_school": {"name": "SDN 1 Malang", "graduation_year": 2025},
        "last_grade": "6",
        "achievements": [{"title": "Quran recitation", "level": "district", "year": 2024}],
    }


def _descriptor(doc_key: str) -> dict:
    return {
        "filename": f"{doc_key}-abc.pdf",
        "original_name": f"{doc_key}.pdf",
        "storage_ref": f"MTS-2026-0001/{doc_key}-abc.pdf",
        "content_type": "application/pdf",
        "size": 1024,
        "uploaded_at": datetime.now(UTC).isoformat(),
    }


@pytest.fixture
def descriptor():
    """Factory for a stored document descriptor."""
    return _descriptor


@pytest.fixture
def complete_documents():
    """A documents map holding every required document."""
    return {doc.value: _descriptor(doc.value) for doc in REQUIRED_DOCUMENTS}


@pytest.fixture
def make_registration(personal_data):
    """Factory for detached Registration instances."""

    def _make(
        status: RegistrationStatus = RegistrationStatus.DRAFT,
        documents: dict | None = None,
        registration_number: str = "MTS-2026-0001",
        **overrides,
    ) -> Registration:
        now = datetime.now(UTC)
        registration = Registration(
            id=uuid4(),
            registration_number=registration_number,
            personal_data={**personal_data, "email": personal_data["email"].lower()},
            parent_data=None,
            academic_data=None,
            applicant_email=personal_data["email"].lower(),
            applicant_phone=personal_data["phone_number"],
            documents=documents if documents is not None else {},
            status=status,
            email_sent=False,
            sms_sent=False,
            version=1,
            created_at=now,
            updated_at=now,
        )
        for key, value in overrides.items():
            setattr(registration, key, value)
        return registration

    return _make
