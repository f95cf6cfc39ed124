"""
Business Logic Services Package.

Contains the session controller and its collaborators.  Services depend
on the Repository layer for profile rows and on the Supabase auth
adapter for sessions.

The ``create_services()`` factory wires every repository and service
together, returning a typed dict that the application layer can consume
without knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import TypedDict

from paperdraft.config import AppConfig
from paperdraft.database import DatabaseManager
from paperdraft.logger import get_logger
from paperdraft.repositories.profile_repository import ProfileRepository
from paperdraft.services.remote_auth import SupabaseAuthService
from paperdraft.services.session_controller import SessionController


class ServiceContainer(TypedDict):
    """Typed container for all application services."""

    profile_repository: ProfileRepository
    remote_auth_service: SupabaseAuthService
    session_controller: SessionController


def create_services(
    db: DatabaseManager,
    config: AppConfig,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.  The
    application entry-point calls this once at startup and hands the
    ``session_controller`` to the UI tree.

    Args:
        db: Connected DatabaseManager (online or offline).
        config: Application configuration.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("services")

    profile_repository = ProfileRepository(
        db=db,
        logger=logger,
        table=config.PROFILE_TABLE,
    )
    remote_auth_service = SupabaseAuthService(db=db, logger=logger)

    session_controller = SessionController(
        remote=remote_auth_service,
        profile_store=profile_repository,
        logger=get_logger("session"),
    )

    return ServiceContainer(
        profile_repository=profile_repository,
        remote_auth_service=remote_auth_service,
        session_controller=session_controller,
    )
