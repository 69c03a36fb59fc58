"""Tests for the in-memory collaborator stubs and the side-effect runner."""

from __future__ import annotations

import uuid
from typing import Any

import pytest

from leaveflow.models.enums import NotificationType, UserRole
from leaveflow.services.directory import InMemoryUserDirectory, UserDirectory, UserInfo
from leaveflow.services.documents import DocumentPipeline, InMemoryDocumentPipeline
from leaveflow.services.notifications import InMemoryNotificationSink, Notification, NotificationSink
from leaveflow.services.side_effects import SideEffects

COMPANY_A = uuid.uuid4()
COMPANY_B = uuid.uuid4()


def _make_user(
    company_id: uuid.UUID, name: str = "Jane", role: UserRole = UserRole.EMPLOYEE, **kwargs: Any
) -> UserInfo:
    return UserInfo(
        id=uuid.uuid4(),
        company_id=company_id,
        name=name,
        email=f"{name.lower()}@example.com",
        role=role,
        **kwargs,
    )


def test_stubs_satisfy_protocols() -> None:
    assert isinstance(InMemoryUserDirectory(), UserDirectory)
    assert isinstance(InMemoryNotificationSink(), NotificationSink)
    assert isinstance(InMemoryDocumentPipeline(), DocumentPipeline)


# ---------------------------------------------------------------------------
# InMemoryUserDirectory
# ---------------------------------------------------------------------------


async def test_directory_get_not_found() -> None:
    assert await InMemoryUserDirectory().get_user(COMPANY_A, uuid.uuid4()) is None


async def test_directory_lookups_are_company_scoped() -> None:
    directory = InMemoryUserDirectory()
    jane = _make_user(COMPANY_A)
    directory.seed(jane)
    directory.seed(_make_user(COMPANY_B, "Bob"))

    assert await directory.get_user(COMPANY_A, jane.id) == jane
    assert await directory.get_user(COMPANY_B, jane.id) is None
    assert [u.name for u in await directory.list_users(COMPANY_A)] == ["Jane"]


async def test_find_active_by_role_skips_excluded_and_inactive() -> None:
    directory = InMemoryUserDirectory()
    first = _make_user(COMPANY_A, "Ana", UserRole.HR)
    retired = _make_user(COMPANY_A, "Rui", UserRole.HR, is_active=False)
    second = _make_user(COMPANY_A, "Lea", UserRole.HR)
    for user in (first, retired, second):
        directory.seed(user)

    assert await directory.find_active_by_role(COMPANY_A, UserRole.HR) == first
    assert await directory.find_active_by_role(COMPANY_A, UserRole.HR, exclude_ids=[first.id]) == second
    assert await directory.find_active_by_role(COMPANY_A, UserRole.HR, exclude_ids=[first.id, second.id]) is None
    assert await directory.find_active_by_role(COMPANY_B, UserRole.HR) is None


# ---------------------------------------------------------------------------
# Notifications and documents
# ---------------------------------------------------------------------------


async def test_notification_sink_records_per_user() -> None:
    sink = InMemoryNotificationSink()
    user_id = uuid.uuid4()
    await sink.send(Notification(user_id=user_id, type=NotificationType.APPROVAL_REQUIRED, title="t", message="m"))
    await sink.send(Notification(user_id=uuid.uuid4(), type=NotificationType.REQUEST_APPROVED, title="t", message="m"))

    assert len(sink.sent) == 2
    assert [n.type for n in sink.for_user(user_id)] == [NotificationType.APPROVAL_REQUIRED]


async def test_document_pipeline_tracks_signatures() -> None:
    pipeline = InMemoryDocumentPipeline()
    request_id = uuid.uuid4()
    actor_id = uuid.uuid4()

    document_id = await pipeline.generate_document(request_id, "tpl-leave")
    await pipeline.add_signature(document_id, actor_id, "HR", "APPROVED_BY_HR")

    assert await pipeline.find_document(request_id) == document_id
    assert await pipeline.find_document(uuid.uuid4()) is None
    assert [(s.actor_id, s.signature) for s in pipeline.documents[document_id].signatures] == [
        (actor_id, "APPROVED_BY_HR")
    ]


async def test_signing_unknown_document_raises() -> None:
    with pytest.raises(KeyError):
        await InMemoryDocumentPipeline().add_signature("doc-missing", uuid.uuid4(), "HR", "x")


# ---------------------------------------------------------------------------
# SideEffects
# ---------------------------------------------------------------------------


async def test_side_effects_run_in_order_and_survive_failures() -> None:
    calls: list[str] = []

    async def _ok(label: str) -> None:
        calls.append(label)

    async def _boom() -> None:
        msg = "sink offline"
        raise RuntimeError(msg)

    effects = SideEffects()
    effects.add("first", lambda: _ok("first"))
    effects.add("broken", _boom)
    effects.add("last", lambda: _ok("last"))

    failed = await effects.run()

    assert calls == ["first", "last"]
    assert failed == ["broken"]
    assert effects.effects == []
