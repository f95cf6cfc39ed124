"""
PaperDraft Session Controller Entry Point.

Bootstraps the dependency graph via constructor injection, resolves the
current Supabase session, optionally signs in, and reports the resulting
session state.  Every subsystem is wired here; there are no module-level globals.

Usage::

    python main.py
    python main.py --email ada@example.com
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from typing import Optional, Sequence

from paperdraft.config import get_config
from paperdraft.database import DatabaseManager
from paperdraft.logger import StructuredLogger, get_logger
from paperdraft.models.auth_models import ControllerState
from paperdraft.services import create_services


def _describe(state: ControllerState) -> str:
    if state.error:
        return f"error: {state.error}"
    if state.identity is None:
        return "signed out"
    name = state.profile.full_name if state.profile and state.profile.full_name else state.identity.email
    return f"signed in as {name} <{state.identity.email}>"


async def run(email: Optional[str] = None) -> int:
    """Wire dependencies, resolve the session and report it.

    Returns the process exit code.
    """
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting PaperDraft session controller...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Supabase connection (offline when credentials are missing)
    # ------------------------------------------------------------------
    db = await DatabaseManager.connect(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        logger=StructuredLogger(name="database"),
        auto_refresh_token=config.AUTH_AUTO_REFRESH_TOKEN,
        persist_session=config.AUTH_PERSIST_SESSION,
    )

    # ------------------------------------------------------------------
    # 3. Service container (single composition root)
    # ------------------------------------------------------------------
    services = create_services(db=db, config=config)
    controller = services["session_controller"]
    controller.subscribe(lambda state: logger.info("Session state: %s", _describe(state)))

    # ------------------------------------------------------------------
    # 4. Session lifecycle
    # ------------------------------------------------------------------
    exit_code = 0
    async with controller:
        if email:
            password = getpass.getpass(f"Password for {email}: ")
            result = await controller.sign_in(email, password)
            if not result.success:
                exit_code = 1
        await controller.wait_for_pending()
        print(_describe(controller.state))

    logger.info("PaperDraft session controller shut down.")
    return exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Resolve or open a PaperDraft session.")
    parser.add_argument("--email", help="sign in with this email (password is prompted)")
    args = parser.parse_args(argv)
    return asyncio.run(run(email=args.email))


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
