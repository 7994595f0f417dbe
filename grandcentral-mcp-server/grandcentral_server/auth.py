"""Authentication state and device storage persistence."""

import json
import os
from pathlib import Path
from typing import Any, Optional
import logging

from .models import Employee, SessionData

logger = logging.getLogger(__name__)


class AuthManager:
    """Manages the persisted session: token, cached employee and preferences."""

    def __init__(self, session_file: Optional[str] = None) -> None:
        """
        Initialize the authentication manager.

        Args:
            session_file: Path to store session data. Defaults to ~/.grandcentral_session.json
        """
        if session_file is None:
            session_file = str(Path.home() / ".grandcentral_session.json")
        self.session_file = session_file
        self.session: SessionData = self._load_session()

    def _load_session(self) -> SessionData:
        """
        Hydrate session data from the file if it exists.

        Best effort: a corrupt file is logged and replaced by an empty session.
        """
        if not os.path.exists(self.session_file):
            return SessionData()

        try:
            with open(self.session_file, "r") as f:
                data = json.load(f)
            session = SessionData.model_validate(data)
            # The cached employee is the source of truth for the id when both exist.
            user_id = (session.user_data or {}).get("id")
            if user_id is not None:
                session.employee_id = int(user_id)
        except (OSError, json.JSONDecodeError, ValueError, TypeError) as e:
            logger.warning(f"Could not load session from {self.session_file}: {e}")
            return SessionData()

        if session.auth_token:
            logger.info(f"Loaded existing session from {self.session_file}")
        return session

    def _save_session(self) -> None:
        """Save session data to file."""
        try:
            with open(self.session_file, "w") as f:
                json.dump(self.session.model_dump(by_alias=True), f, indent=2, default=str)
            # Set restrictive permissions on session file
            os.chmod(self.session_file, 0o600)
        except OSError as e:
            logger.error(f"Could not save session: {e}")

    def save_login(
        self,
        token: Optional[str],
        employee: Optional[Employee] = None,
        employee_id: Optional[int] = None,
    ) -> None:
        """
        Persist the result of a successful OTP verification.

        Args:
            token: Opaque bearer token issued by the server
            employee: Employee record returned with the token
            employee_id: Employee ID when no employee record was returned
        """
        if token:
            self.session.auth_token = token
        if employee is not None:
            self.session.user_data = employee.model_dump()
            employee_id = employee.id
        if employee_id is not None:
            self.session.employee_id = employee_id
        self._save_session()
        logger.info(f"Session saved for employee {self.session.employee_id}")

    def clear_session(self) -> None:
        """Clear token and cached employee, keeping language and theme."""
        self.session = SessionData(
            language=self.session.language,
            theme=self.session.theme,
        )
        self._save_session()
        logger.info("Session cleared")

    def is_authenticated(self) -> bool:
        """A session needs both a token and an employee ID."""
        return bool(self.session.auth_token) and self.session.employee_id is not None

    def get_token(self) -> Optional[str]:
        return self.session.auth_token

    def get_employee_id(self) -> Optional[int]:
        return self.session.employee_id

    def get_user(self) -> Optional[dict[str, Any]]:
        return self.session.user_data

    @property
    def language(self) -> str:
        return self.session.language

    def set_language(self, language: str) -> None:
        self.session.language = language
        self._save_session()

    @property
    def theme(self) -> str:
        return self.session.theme

    def set_theme(self, theme: str) -> None:
        self.session.theme = theme
        self._save_session()
