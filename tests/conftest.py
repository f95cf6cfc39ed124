"""Shared fixtures and in-memory fakes for the remote service contracts."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Mapping, Optional

import pytest

from paperdraft.auth import SessionStateStore
from paperdraft.interfaces import ProfileRow, SessionChangeCallback
from paperdraft.logger import StructuredLogger
from paperdraft.models.auth_models import (
    ControllerState,
    Identity,
    RemoteError,
    Session,
    SessionToken,
)
from paperdraft.services.session_controller import SessionController


def make_identity(user_id: str = "user-1", email: str = "a@b.com", name: Optional[str] = None) -> Identity:
    return Identity(id=user_id, email=email, display_name=name)


def make_session(
    user_id: str = "user-1",
    email: str = "a@b.com",
    name: Optional[str] = None,
    access_token: str = "access-1",
) -> Session:
    return Session(
        identity=make_identity(user_id, email, name),
        token=SessionToken(access_token=access_token, refresh_token="refresh-1", expires_at=1_900_000_000),
    )


def profile_row(user_id: str = "user-1", email: str = "a@b.com", full_name: Optional[str] = "Ada") -> ProfileRow:
    return {
        "user_id": user_id,
        "email": email,
        "full_name": full_name,
        "grok_api_key": None,
        "created_at": "2024-01-01T00:00:00+00:00",
        "updated_at": "2024-01-01T00:00:00+00:00",
    }


class FakeSubscription:
    def __init__(self, remote: "FakeRemote") -> None:
        self._remote = remote
        self.unsubscribe_calls = 0

    def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        self._remote.listeners.clear()


class FakeRemote:
    """In-memory ``RemoteAuthClient``.

    Configure the outcome of each call through the public attributes;
    every call is recorded in ``calls``.  ``get_session_gate`` holds the
    session query until the test sets it.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.listeners: list[SessionChangeCallback] = []
        self.subscriptions: list[FakeSubscription] = []

        self.session: Optional[Session] = None
        self.session_error: Optional[RemoteError] = None
        self.get_session_raises: Optional[Exception] = None
        self.get_session_gate: Optional[asyncio.Event] = None

        self.account_identity: Optional[Identity] = make_identity()
        self.account_error: Optional[RemoteError] = None
        self.account_metadata: Optional[Mapping[str, Any]] = None
        self.create_account_raises: Optional[Exception] = None
        # pushed to listeners from inside create_account, as sign_up does
        self.session_on_create: Optional[Session] = None

        self.credentials: dict[tuple[str, str], Session] = {}
        self.sign_in_error: Optional[RemoteError] = None
        self.verify_raises: Optional[Exception] = None

        self.sign_out_error: Optional[RemoteError] = None
        self.sign_out_raises: Optional[Exception] = None

    # -- contract ------------------------------------------------------

    async def get_session(self) -> tuple[Optional[Session], Optional[RemoteError]]:
        self.calls.append("get_session")
        if self.get_session_gate is not None:
            await self.get_session_gate.wait()
        if self.get_session_raises is not None:
            raise self.get_session_raises
        if self.session_error is not None:
            return None, self.session_error
        return self.session, None

    def on_session_change(self, callback: SessionChangeCallback) -> FakeSubscription:
        self.calls.append("on_session_change")
        self.listeners.append(callback)
        subscription = FakeSubscription(self)
        self.subscriptions.append(subscription)
        return subscription

    async def create_account(
        self,
        email: str,
        password: str,
        metadata: Mapping[str, Any],
    ) -> tuple[Optional[Identity], Optional[RemoteError]]:
        self.calls.append("create_account")
        self.account_metadata = dict(metadata)
        if self.create_account_raises is not None:
            raise self.create_account_raises
        if self.account_error is not None:
            return None, self.account_error
        if self.session_on_create is not None:
            self.session = self.session_on_create
            self.emit("SIGNED_IN", self.session_on_create)
        return self.account_identity, None

    async def verify_credentials(
        self,
        email: str,
        password: str,
    ) -> tuple[Optional[Identity], Optional[Session], Optional[RemoteError]]:
        self.calls.append("verify_credentials")
        if self.verify_raises is not None:
            raise self.verify_raises
        if self.sign_in_error is not None:
            return None, None, self.sign_in_error
        session = self.credentials.get((email, password))
        if session is None:
            return None, None, RemoteError(message="Invalid login credentials", status=400)
        self.session = session
        return session.identity, session, None

    async def invalidate_session(self) -> Optional[RemoteError]:
        self.calls.append("invalidate_session")
        if self.sign_out_raises is not None:
            raise self.sign_out_raises
        if self.sign_out_error is not None:
            return self.sign_out_error
        self.session = None
        return None

    # -- test helpers --------------------------------------------------

    def emit(self, event: str, session: Optional[Session]) -> None:
        for listener in list(self.listeners):
            listener(event, session)


class FakeProfileStore:
    """In-memory ``ProfileStore`` keyed by ``user_id``."""

    def __init__(self) -> None:
        self.rows: dict[str, ProfileRow] = {}
        self.calls: list[tuple[str, Any]] = []

        self.get_error: Optional[RemoteError] = None
        self.insert_error: Optional[RemoteError] = None
        self.update_error: Optional[RemoteError] = None

        self.get_gate: Optional[asyncio.Event] = None
        self.get_started: asyncio.Event = asyncio.Event()
        self.update_gate: Optional[asyncio.Event] = None
        self.update_started: asyncio.Event = asyncio.Event()

    async def get(self, identity_id: str) -> tuple[Optional[ProfileRow], Optional[RemoteError]]:
        self.calls.append(("get", identity_id))
        self.get_started.set()
        if self.get_gate is not None:
            await self.get_gate.wait()
        await asyncio.sleep(0)
        if self.get_error is not None:
            return None, self.get_error
        row = self.rows.get(identity_id)
        return (dict(row) if row is not None else None), None

    async def insert(self, row: ProfileRow) -> tuple[Optional[ProfileRow], Optional[RemoteError]]:
        self.calls.append(("insert", dict(row)))
        await asyncio.sleep(0)
        if self.insert_error is not None:
            return None, self.insert_error
        if row["user_id"] in self.rows:
            return None, RemoteError(message="duplicate key value violates unique constraint", code="23505")
        self.rows[row["user_id"]] = dict(row)
        return dict(row), None

    async def update(
        self,
        identity_id: str,
        partial_row: ProfileRow,
    ) -> tuple[Optional[ProfileRow], Optional[RemoteError]]:
        self.calls.append(("update", (identity_id, dict(partial_row))))
        self.update_started.set()
        if self.update_gate is not None:
            await self.update_gate.wait()
        if self.update_error is not None:
            return None, self.update_error
        row = self.rows.get(identity_id)
        if row is None:
            return None, None
        row.update(partial_row)
        # echo deliberately differs from the stored row
        return {**row, "full_name": "ECHO"}, None

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]


async def settle() -> None:
    """Let every ready task on the loop run."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def logger(tmp_path) -> StructuredLogger:
    return StructuredLogger(
        name=f"paperdraft.test.{uuid.uuid4().hex}",
        log_file=str(tmp_path / "paperdraft-test.log"),
    )


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def profiles() -> FakeProfileStore:
    return FakeProfileStore()


@pytest.fixture
def store(logger) -> SessionStateStore:
    return SessionStateStore(logger)


@pytest.fixture
def snapshots(store) -> list[ControllerState]:
    observed: list[ControllerState] = []
    store.subscribe(observed.append)
    return observed


@pytest.fixture
def controller(remote, profiles, logger, store) -> SessionController:
    return SessionController(remote=remote, profile_store=profiles, logger=logger, store=store)
