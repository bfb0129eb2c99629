"""Editing session store holding one filter tree per session."""

import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from datetime import datetime, timedelta

from ..models import FilterGroup
from ..services import SubmissionGuard

GroupsChange = Callable[[List[FilterGroup]], List[FilterGroup]]


@dataclass
class EditingSession:
    """Filter tree being edited, plus the template it was loaded from."""
    id: str
    groups: List[FilterGroup] = field(default_factory=list)
    source_template_id: Optional[int] = None
    source_template_name: Optional[str] = None
    is_modified: bool = False
    guard: SubmissionGuard = field(default_factory=SubmissionGuard)
    last_activity: datetime = field(default_factory=datetime.now)


class SessionStore:
    """Thread-safe editing session store."""

    def __init__(self, max_sessions: int = 500, cleanup_after_hours: int = 24):
        self._sessions: Dict[str, EditingSession] = {}
        self._lock = threading.Lock()
        self.max_sessions = max_sessions
        self.cleanup_after = timedelta(hours=cleanup_after_hours)

    def create_session(self, groups: Optional[List[FilterGroup]] = None) -> EditingSession:
        """Start a new session, evicting the least recently used one when full."""
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                oldest = min(self._sessions.values(), key=lambda s: s.last_activity)
                del self._sessions[oldest.id]

            session = EditingSession(id=str(uuid.uuid4()), groups=list(groups or []))
            self._sessions[session.id] = session
            return session

    def get_session(self, session_id: str) -> Optional[EditingSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.last_activity = datetime.now()
            return session

    def update_groups(self, session_id: str, change: GroupsChange) -> Optional[EditingSession]:
        """Apply ``change`` to the session tree and commit the result atomically.

        ``change`` runs under the store lock, so it must not block. Edits to a
        tree loaded from a template mark it modified.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            session.groups = list(change(session.groups))
            session.last_activity = datetime.now()
            if session.source_template_id is not None:
                session.is_modified = True
            return session

    def load_template(self, session_id: str, groups: List[FilterGroup],
                      template_id: Optional[int], template_name: Optional[str]) -> Optional[EditingSession]:
        """Replace the tree with a loaded template and remember where it came from."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            session.groups = list(groups)
            session.source_template_id = template_id
            session.source_template_name = template_name
            session.is_modified = False
            session.last_activity = datetime.now()
            return session

    def mark_saved(self, session_id: str, saved_groups: List[FilterGroup],
                   template_id: int, template_name: Optional[str]) -> Optional[EditingSession]:
        """Record that ``saved_groups`` were stored as a template.

        Edits committed while the save was in flight keep the session modified.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            session.source_template_id = template_id
            session.source_template_name = template_name
            session.is_modified = session.groups != saved_groups
            return session

    def repair_all(self, change: GroupsChange) -> int:
        """Apply an automatic fix-up to every session.

        Activity time and the modified flag are left alone. Returns the number
        of sessions whose tree changed.
        """
        repaired = 0
        with self._lock:
            for session in self._sessions.values():
                groups = list(change(session.groups))
                if groups != session.groups:
                    session.groups = groups
                    repaired += 1
        return repaired

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def cleanup_old_sessions(self) -> int:
        """Drop sessions that haven't been active for a while."""
        cutoff_time = datetime.now() - self.cleanup_after

        with self._lock:
            expired = [
                session_id for session_id, session
                in self._sessions.items()
                if session.last_activity < cutoff_time
            ]
            for session_id in expired:
                del self._sessions[session_id]

        return len(expired)

    def get_stats(self) -> Dict[str, int]:
        """Get store statistics."""
        with self._lock:
            return {
                "total_sessions": len(self._sessions),
                "total_groups": sum(len(s.groups) for s in self._sessions.values()),
                "total_blocks": sum(
                    len(g.blocks) for s in self._sessions.values() for g in s.groups
                ),
            }
