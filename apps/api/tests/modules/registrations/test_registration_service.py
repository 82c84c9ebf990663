"""
Tests for the public registration service functions.

These tests verify:
- Two-phase creation with duplicate email detection
- Draft-only editing
- Document upload validation, storage and cleanup
- Submission gating and post-commit notification
- Optimistic-lock conflicts surfacing as ConcurrentUpdateError
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from admissions.modules.registrations.events import EventKind
from admissions.modules.registrations.models import RegistrationStatus
from admissions.modules.registrations.schemas import RegistrationUpdate
from admissions.modules.registrations.service import (
    UploadedFile,
    create_registration,
    get_registration,
    resend_confirmation,
    submit_registration,
    update_registration,
    update_section,
    upload_documents,
)
from admissions.modules.registrations.storage import LocalBlobStore
from admissions.modules.shared.errors import (
    ConcurrentUpdateError,
    DuplicateEmailError,
    IncompleteDocumentsError,
    InvalidStateError,
    InvalidTransitionError,
    RegistrationNotFoundError,
    RegistrationValidationError,
)

SERVICE = "admissions.modules.registrations.service"

PDF_BYTES = b"%PDF-1.4 test document"
PNG_BYTES = b"\x89PNG\r\n\x1a\n test image"


def _return_registration(_db, registration):
    return registration


@pytest.fixture
def mock_dispatcher():
    with patch(f"{SERVICE}.get_dispatcher") as mock_get:
        dispatcher = MagicMock()
        mock_get.return_value = dispatcher
        yield dispatcher


@pytest.fixture
def mock_repo():
    with patch(f"{SERVICE}.repository") as repo:
        repo.email_taken = AsyncMock(return_value=False)
        repo.add = AsyncMock(side_effect=_return_registration)
        repo.save = AsyncMock(side_effect=_return_registration)
        repo.get_by_registration_number = AsyncMock(return_value=None)
        yield repo


@pytest.fixture
def store(tmp_path):
    return LocalBlobStore(tmp_path)


def _upload(field_name: str, content: bytes = PDF_BYTES, content_type="application/pdf"):
    return UploadedFile(
        field_name=field_name,
        filename=f"{field_name}.pdf",
        content_type=content_type,
        content=content,
    )


# ============================================
# Test create_registration
# ============================================


class TestCreateRegistration:
    """Tests for create_registration."""

    @pytest.mark.asyncio
    async def test_create_success(self, mock_db, mock_repo, mock_dispatcher, personal_data):
        """Creates a Draft with an allocated number and notifies after insert."""
        with patch(f"{SERVICE}.allocator") as mock_allocator:
            mock_allocator.next_registration_number = AsyncMock(return_value="MTS-2026-0001")

            registration = await create_registration(mock_db, personal_data)

        assert registration.registration_number == "MTS-2026-0001"
        assert registration.status == RegistrationStatus.DRAFT
        assert registration.applicant_email == "ahmad.fauzi@example.com"
        assert registration.documents == {}
        mock_repo.add.assert_awaited_once()

        mock_dispatcher.dispatch.assert_called_once()
        event = mock_dispatcher.dispatch.call_args.args[0]
        assert event.kind == EventKind.REGISTRATION_CREATED
        assert event.registration_number == "MTS-2026-0001"
        assert event.full_name == "Ahmad Fauzi"

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected_before_allocation(
        self, mock_db, mock_repo, mock_dispatcher, personal_data
    ):
        """A known email never consumes a registration number."""
        mock_repo.email_taken = AsyncMock(return_value=True)

        with patch(f"{SERVICE}.allocator") as mock_allocator:
            mock_allocator.next_registration_number = AsyncMock()

            with pytest.raises(DuplicateEmailError) as exc_info:
                await create_registration(mock_db, personal_data)

            mock_allocator.next_registration_number.assert_not_called()

        assert exc_info.value.error_code == "DUPLICATE_EMAIL"
        assert exc_info.value.status_code == 400
        mock_repo.add.assert_not_called()
        mock_dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_email_race_on_insert(
        self, mock_db, mock_repo, mock_dispatcher, personal_data
    ):
        """A unique violation at insert time becomes DuplicateEmailError."""
        mock_repo.add = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("duplicate key"))
        )

        with patch(f"{SERVICE}.allocator") as mock_allocator:
            mock_allocator.next_registration_number = AsyncMock(return_value="MTS-2026-0002")

            with pytest.raises(DuplicateEmailError):
                await create_registration(mock_db, personal_data)

        mock_db.rollback.assert_awaited_once()
        mock_dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_personal_data(self, mock_db, mock_repo, mock_dispatcher, personal_data):
        """Validation fails before any database work."""
        personal_data["email"] = "not-an-email"

        with pytest.raises(RegistrationValidationError) as exc_info:
            await create_registration(mock_db, personal_data)

        assert any(err["field"] == "email" for err in exc_info.value.errors)
        mock_repo.email_taken.assert_not_called()

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_create(
        self, mock_db, mock_repo, mock_dispatcher, personal_data
    ):
        """A dispatcher error is logged, the registration is still returned."""
        mock_dispatcher.dispatch.side_effect = RuntimeError("no event loop")

        with patch(f"{SERVICE}.allocator") as mock_allocator:
            mock_allocator.next_registration_number = AsyncMock(return_value="MTS-2026-0003")

            registration = await create_registration(mock_db, personal_data)

        assert registration.registration_number == "MTS-2026-0003"


# ============================================
# Test section updates
# ============================================


class TestUpdateSections:
    """Tests for update_section and update_registration."""

    @pytest.mark.asyncio
    async def test_update_parent_data(self, mock_db, mock_repo, make_registration, parent_data):
        registration = make_registration()
        mock_repo.get_by_registration_number = AsyncMock(return_value=registration)

        result = await update_section(mock_db, "MTS-2026-0001", "parent_data", parent_data)

        assert result.parent_data["mother"]["name"] == "Siti Aminah"
        mock_repo.save.assert_awaited_once_with(mock_db, registration)

    @pytest.mark.asyncio
    async def test_update_unknown_registration(self, mock_db, mock_repo, parent_data):
        with pytest.raises(RegistrationNotFoundError):
            await update_section(mock_db, "MTS-2026-9999", "parent_data", parent_data)

    @pytest.mark.asyncio
    async def test_update_after_submit_rejected(
        self, mock_db, mock_repo, make_registration, academic_data
    ):
        mock_repo.get_by_registration_number = AsyncMock(
            return_value=make_registration(status=RegistrationStatus.SUBMITTED)
        )

        with pytest.raises(InvalidStateError):
            await update_section(mock_db, "MTS-2026-0001", "academic_data", academic_data)

        mock_repo.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_personal_update_checks_email_of_others(
        self, mock_db, mock_repo, make_registration, personal_data
    ):
        registration = make_registration()
        mock_repo.get_by_registration_number = AsyncMock(return_value=registration)
        mock_repo.email_taken = AsyncMock(return_value=True)

        with pytest.raises(DuplicateEmailError):
            await update_section(
                mock_db,
                "MTS-2026-0001",
                "personal_data",
                {**personal_data, "email": "taken@example.com"},
            )

        mock_repo.email_taken.assert_awaited_once_with(
            mock_db, "taken@example.com", exclude_id=registration.id
        )
        mock_repo.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_email_check_runs_before_registration_is_modified(
        self, mock_db, mock_repo, make_registration, personal_data
    ):
        """
        The uniqueness query must see an untouched registration: a pending
        edit would be autoflushed by the query and hit the unique constraint
        instead of raising DuplicateEmailError.
        """
        registration = make_registration()
        original = (registration.applicant_email, registration.personal_data)
        seen_during_check = []

        async def email_taken(_db, _email, exclude_id=None):
            seen_during_check.append((registration.applicant_email, registration.personal_data))
            return True

        mock_repo.get_by_registration_number = AsyncMock(return_value=registration)
        mock_repo.email_taken = AsyncMock(side_effect=email_taken)
        data = RegistrationUpdate.model_validate(
            {"personal_data": {**personal_data, "email": "taken@example.com"}}
        )

        with pytest.raises(DuplicateEmailError):
            await update_registration(mock_db, "MTS-2026-0001", data)

        assert seen_during_check == [original]
        assert (registration.applicant_email, registration.personal_data) == original
        mock_repo.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_personal_update_checks_email_before_modifying(
        self, mock_db, mock_repo, make_registration, personal_data
    ):
        registration = make_registration()
        original_email = registration.applicant_email
        seen_during_check = []

        async def email_taken(_db, _email, exclude_id=None):
            seen_during_check.append(registration.applicant_email)
            return False

        mock_repo.get_by_registration_number = AsyncMock(return_value=registration)
        mock_repo.email_taken = AsyncMock(side_effect=email_taken)

        result = await update_section(
            mock_db,
            "MTS-2026-0001",
            "personal_data",
            {**personal_data, "email": "Fresh@Example.com"},
        )

        assert seen_during_check == [original_email]
        assert result.applicant_email == "fresh@example.com"

    @pytest.mark.asyncio
    async def test_personal_update_after_submit_skips_email_check(
        self, mock_db, mock_repo, make_registration, personal_data
    ):
        mock_repo.get_by_registration_number = AsyncMock(
            return_value=make_registration(status=RegistrationStatus.SUBMITTED)
        )

        with pytest.raises(InvalidStateError):
            await update_section(mock_db, "MTS-2026-0001", "personal_data", personal_data)

        mock_repo.email_taken.assert_not_called()

    @pytest.mark.asyncio
    async def test_bulk_update(
        self, mock_db, mock_repo, make_registration, parent_data, academic_data
    ):
        registration = make_registration()
        mock_repo.get_by_registration_number = AsyncMock(return_value=registration)
        data = RegistrationUpdate.model_validate(
            {"parent_data": parent_data, "academic_data": academic_data}
        )

        result = await update_registration(mock_db, "MTS-2026-0001", data)

        assert result.parent_data["father"]["name"] == "Budi Santoso"
        assert result.academic_data["last_grade"] == "6"
        mock_repo.email_taken.assert_not_called()

    @pytest.mark.asyncio
    async def test_bulk_update_requires_a_section(self, mock_db, mock_repo):
        with pytest.raises(RegistrationValidationError):
            await update_registration(mock_db, "MTS-2026-0001", RegistrationUpdate())

    @pytest.mark.asyncio
    async def test_stale_update_raises_conflict(
        self, mock_db, mock_repo, make_registration, parent_data
    ):
        """A concurrent write detected by the version check maps to 409."""
        mock_repo.get_by_registration_number = AsyncMock(return_value=make_registration())
        mock_repo.save = AsyncMock(side_effect=StaleDataError("version mismatch"))

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            await update_section(mock_db, "MTS-2026-0001", "parent_data", parent_data)

        assert exc_info.value.status_code == 409
        mock_db.rollback.assert_awaited_once()


# ============================================
# Test upload_documents
# ============================================


class TestUploadDocuments:
    """Tests for upload_documents."""

    @pytest.mark.asyncio
    async def test_upload_stores_and_records(
        self, mock_db, mock_repo, make_registration, store, tmp_path
    ):
        registration = make_registration()
        mock_repo.get_by_registration_number = AsyncMock(return_value=registration)

        result, uploaded = await upload_documents(
            mock_db,
            store,
            "MTS-2026-0001",
            [
                _upload("birth_certificate"),
                _upload("photo", PNG_BYTES, "image/png"),
            ],
        )

        assert uploaded == ["birth_certificate", "photo"]
        photo = result.documents["photo"]
        assert photo["content_type"] == "image/png"
        assert photo["size"] == len(PNG_BYTES)
        assert (tmp_path / photo["storage_ref"]).read_bytes() == PNG_BYTES
        mock_repo.save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_upload_allowed_after_submit(
        self, mock_db, mock_repo, make_registration, complete_documents, store
    ):
        registration = make_registration(
            status=RegistrationStatus.SUBMITTED, documents=complete_documents
        )
        mock_repo.get_by_registration_number = AsyncMock(return_value=registration)

        _, uploaded = await upload_documents(
            mock_db, store, "MTS-2026-0001", [_upload("health_certificate")]
        )

        assert uploaded == ["health_certificate"]

    @pytest.mark.asyncio
    async def test_replacing_document_removes_old_blob(
        self, mock_db, mock_repo, make_registration, descriptor, store, tmp_path
    ):
        old = descriptor("family_card")
        old_path = tmp_path / old["storage_ref"]
        old_path.parent.mkdir(parents=True)
        old_path.write_bytes(b"old")
        mock_repo.get_by_registration_number = AsyncMock(
            return_value=make_registration(documents={"family_card": old})
        )

        result, _ = await upload_documents(
            mock_db, store, "MTS-2026-0001", [_upload("family_card")]
        )

        assert not old_path.exists()
        assert result.documents["family_card"]["storage_ref"] != old["storage_ref"]

    @pytest.mark.asyncio
    async def test_disallowed_type_stores_nothing(
        self, mock_db, mock_repo, make_registration, store, tmp_path
    ):
        mock_repo.get_by_registration_number = AsyncMock(return_value=make_registration())

        with pytest.raises(RegistrationValidationError):
            await upload_documents(
                mock_db,
                store,
                "MTS-2026-0001",
                [_upload("birth_certificate"), _upload("photo", PDF_BYTES, "application/pdf")],
            )

        assert list(tmp_path.iterdir()) == []
        mock_repo.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_oversized_file_rejected(self, mock_db, mock_repo, store):
        too_big = b"x" * (5 * 1024 * 1024 + 1)

        with pytest.raises(RegistrationValidationError):
            await upload_documents(mock_db, store, "MTS-2026-0001", [_upload("family_card", too_big)])

        mock_repo.get_by_registration_number.assert_not_called()

    @pytest.mark.asyncio
    async def test_too_many_files_rejected(self, mock_db, mock_repo, store):
        files = [_upload("family_card") for _ in range(6)]

        with pytest.raises(RegistrationValidationError):
            await upload_documents(mock_db, store, "MTS-2026-0001", files)

    @pytest.mark.asyncio
    async def test_same_document_twice_rejected(self, mock_db, mock_repo, store):
        with pytest.raises(RegistrationValidationError):
            await upload_documents(
                mock_db, store, "MTS-2026-0001", [_upload("photo", PNG_BYTES, "image/png")] * 2
            )

    @pytest.mark.asyncio
    async def test_no_files_rejected(self, mock_db, mock_repo, store):
        with pytest.raises(RegistrationValidationError):
            await upload_documents(mock_db, store, "MTS-2026-0001", [])

    @pytest.mark.asyncio
    async def test_failed_commit_removes_new_blobs(
        self, mock_db, mock_repo, make_registration, store, tmp_path
    ):
        mock_repo.get_by_registration_number = AsyncMock(return_value=make_registration())
        mock_repo.save = AsyncMock(side_effect=StaleDataError("version mismatch"))

        with pytest.raises(ConcurrentUpdateError):
            await upload_documents(mock_db, store, "MTS-2026-0001", [_upload("family_card")])

        assert [p for p in tmp_path.rglob("*") if p.is_file()] == []

    @pytest.mark.asyncio
    async def test_storage_failure_midway_removes_saved_blobs(
        self, mock_db, mock_repo, make_registration, store, tmp_path
    ):
        """A blob written before a later write fails is not left behind."""
        mock_repo.get_by_registration_number = AsyncMock(return_value=make_registration())
        real_save = store.save
        calls = []

        async def save_then_fail(*args):
            calls.append(args)
            if len(calls) == 2:
                raise OSError("No space left on device")
            return await real_save(*args)

        with patch.object(store, "save", side_effect=save_then_fail):
            with pytest.raises(OSError):
                await upload_documents(
                    mock_db,
                    store,
                    "MTS-2026-0001",
                    [_upload("birth_certificate"), _upload("family_card")],
                )

        assert len(calls) == 2
        assert [p for p in tmp_path.rglob("*") if p.is_file()] == []
        mock_repo.save.assert_not_called()


# ============================================
# Test submit_registration
# ============================================


class TestSubmitRegistration:
    """Tests for submit_registration."""

    @pytest.mark.asyncio
    async def test_submit_success_notifies_after_commit(
        self, mock_db, mock_repo, mock_dispatcher, make_registration, complete_documents
    ):
        registration = make_registration(documents=complete_documents)
        mock_repo.get_by_registration_number = AsyncMock(return_value=registration)

        calls = []
        mock_repo.save = AsyncMock(
            side_effect=lambda db, r: calls.append("save") or r
        )
        mock_dispatcher.dispatch.side_effect = lambda event: calls.append("dispatch")

        result = await submit_registration(mock_db, "MTS-2026-0001")

        assert result.status == RegistrationStatus.SUBMITTED
        assert calls == ["save", "dispatch"]
        event = mock_dispatcher.dispatch.call_args.args[0]
        assert event.kind == EventKind.STATUS_CHANGED
        assert event.status_label == "Submitted"

    @pytest.mark.asyncio
    async def test_submit_incomplete_writes_nothing(
        self, mock_db, mock_repo, mock_dispatcher, make_registration, descriptor
    ):
        mock_repo.get_by_registration_number = AsyncMock(
            return_value=make_registration(documents={"photo": descriptor("photo")})
        )

        with pytest.raises(IncompleteDocumentsError) as exc_info:
            await submit_registration(mock_db, "MTS-2026-0001")

        assert exc_info.value.missing_documents == [
            "birth_certificate",
            "family_card",
            "previous_diploma",
        ]
        mock_repo.save.assert_not_called()
        mock_dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_submit_twice_rejected(
        self, mock_db, mock_repo, mock_dispatcher, make_registration, complete_documents
    ):
        mock_repo.get_by_registration_number = AsyncMock(
            return_value=make_registration(
                status=RegistrationStatus.SUBMITTED, documents=complete_documents
            )
        )

        with pytest.raises(InvalidTransitionError):
            await submit_registration(mock_db, "MTS-2026-0001")

        mock_dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_submit_unknown_registration(self, mock_db, mock_repo, mock_dispatcher):
        with pytest.raises(RegistrationNotFoundError) as exc_info:
            await submit_registration(mock_db, "MTS-2026-0404")

        assert exc_info.value.status_code == 404


# ============================================
# Test lookups
# ============================================


class TestLookups:
    """Tests for get_registration and resend_confirmation."""

    @pytest.mark.asyncio
    async def test_get_registration(self, mock_db, mock_repo, make_registration):
        registration = make_registration()
        mock_repo.get_by_registration_number = AsyncMock(return_value=registration)

        assert await get_registration(mock_db, "MTS-2026-0001") is registration

    @pytest.mark.asyncio
    async def test_resend_confirmation_dispatches_created_event(
        self, mock_db, mock_repo, mock_dispatcher, make_registration
    ):
        mock_repo.get_by_registration_number = AsyncMock(return_value=make_registration())

        await resend_confirmation(mock_db, "MTS-2026-0001")

        event = mock_dispatcher.dispatch.call_args.args[0]
        assert event.kind == EventKind.REGISTRATION_CREATED
        mock_repo.save.assert_not_called()
