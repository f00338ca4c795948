"""Shared protocol for session storage backends."""

from typing import Optional, Protocol

from routewind.controller import RouteController


class SessionStore(Protocol):
    """Protocol for session storage backends."""

    def create_session(self, controller: RouteController) -> str:
        """Store a controller and return its new session id."""

    def get_session(self, session_id: str) -> Optional[RouteController]:
        """Fetch a controller by id, returning None if missing or expired."""

    def delete_session(self, session_id: str) -> None:
        """Delete a session without raising if it is absent."""

    def purge_expired(self) -> int:
        """Drop expired sessions, returning how many were removed."""

    def clear(self) -> None:
        """Clear all stored sessions."""
