# room_timetable/owners.py
"""
Name-based lookup from a template's free-text teacher name to a user.

Templates reference teachers by name only; the table here is rebuilt from
the current user set every time it is needed and is never stored on a
template. "No match" is a normal outcome.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from room_timetable import models

SKIP = "skip"
ASSIGN_TO_CREATOR = "assign_to_creator"
ASSIGN_TO_ADMIN = "assign_to_admin"

MATCHED = "matched"
CREATOR = "creator"
ADMIN = "admin"
UNMATCHED = "unmatched"


def normalize_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


@dataclass(frozen=True)
class OwnerResolution:
    user_id: Optional[int]
    source: str
    email: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.user_id is not None


class OwnerDirectory:
    def __init__(self, users):
        self._by_name = {}
        self._emails = {}
        self.fallback_admin_id = None
        for user in sorted(users, key=lambda u: u.id):
            self._emails[user.id] = user.email
            key = normalize_name(user.full_name)
            # first profile wins for duplicated names
            if key and key not in self._by_name:
                self._by_name[key] = user.id
            if self.fallback_admin_id is None and user.is_admin:
                self.fallback_admin_id = user.id

    @classmethod
    def load(cls, db: Session) -> "OwnerDirectory":
        return cls(db.query(models.User).all())

    def lookup(self, name: str) -> Optional[int]:
        return self._by_name.get(normalize_name(name))

    def resolve(self, template, policy: str = ASSIGN_TO_ADMIN) -> OwnerResolution:
        """
        Matched teacher first; then, by policy, the template's creator and
        any administrator.
        """
        user_id = self.lookup(template.teacher_name)
        if user_id is not None:
            return OwnerResolution(user_id, MATCHED, self._emails.get(user_id))

        if policy in (ASSIGN_TO_CREATOR, ASSIGN_TO_ADMIN) and template.created_by is not None:
            return OwnerResolution(template.created_by, CREATOR)
        if policy == ASSIGN_TO_ADMIN and self.fallback_admin_id is not None:
            return OwnerResolution(self.fallback_admin_id, ADMIN)
        return OwnerResolution(None, UNMATCHED)
