"""
Access Control

Who may talk to the bot: an approved set of chat user ids, mirrored to a
JSON file, plus one admin identity configured outside the set.

INVARIANTS:
- The admin is approved whether or not the set contains it
- The admin can never be revoked through `revoke`
- Every mutation rewrites the whole file; a failed write is logged and
  reported, the in-memory change stands
"""

import json
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError


logger = structlog.get_logger(__name__)

_IDS = TypeAdapter(list[int])


class ApprovedUserStore:
    """
    Flat JSON list of approved user ids.

    Load failures (missing file, bad JSON, wrong shape) yield an empty list.
    """

    def __init__(self, path: str = "approved_users.json"):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[int]:
        if not self._path.exists():
            logger.info("approved_users_file_missing", path=str(self._path))
            return []
        try:
            ids = _IDS.validate_python(
                json.loads(self._path.read_text(encoding="utf-8"))
            )
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("approved_users_load_failed", path=str(self._path), error=str(e))
            return []

        logger.info("approved_users_loaded", count=len(ids))
        return ids

    def save(self, ids: list[int]) -> bool:
        try:
            self._path.write_text(json.dumps(list(ids), indent=2), encoding="utf-8")
        except OSError as e:
            logger.error("approved_users_save_failed", path=str(self._path), error=str(e))
            return False
        return True


class AccessChange(BaseModel):
    """Outcome of approve / revoke."""

    user_id: int
    changed: bool = False
    refused: bool = False
    persisted: bool = True
    reason: Optional[str] = None


class ApprovedUser(BaseModel):
    """One entry of the approved list, for display."""

    user_id: int
    is_admin: bool = False


class AccessControlLedger:
    """
    Approved identities plus the admin override.

    Args:
        store: Persistence for the approved list; None keeps it in memory
        admin_id: The always-approved identity, if configured
    """

    def __init__(
        self,
        store: Optional[ApprovedUserStore] = None,
        admin_id: Optional[int] = None,
    ):
        self._store = store
        self._admin_id = admin_id
        # dict keeps insertion order and uniqueness
        self._approved: dict[int, None] = {}

        if store is not None:
            for user_id in store.load():
                self._approved[user_id] = None

    @property
    def admin_id(self) -> Optional[int]:
        return self._admin_id

    def is_admin(self, user_id: Optional[int]) -> bool:
        return user_id is not None and self._admin_id is not None and user_id == self._admin_id

    def is_approved(self, user_id: Optional[int]) -> bool:
        if user_id is None:
            return False
        return self.is_admin(user_id) or user_id in self._approved

    def approve(self, user_id: int) -> AccessChange:
        """Add a user; approving an already approved user changes nothing."""
        if user_id in self._approved:
            return AccessChange(user_id=user_id, changed=False)

        self._approved[user_id] = None
        persisted = self._persist()
        logger.info("user_approved", user_id=user_id)
        return AccessChange(user_id=user_id, changed=True, persisted=persisted)

    def revoke(self, user_id: int) -> AccessChange:
        """Remove a user. The admin is refused."""
        if self.is_admin(user_id):
            logger.warning("admin_revoke_refused", user_id=user_id)
            return AccessChange(
                user_id=user_id,
                refused=True,
                reason="Cannot unapprove the admin user.",
            )

        if user_id not in self._approved:
            return AccessChange(user_id=user_id, changed=False)

        del self._approved[user_id]
        persisted = self._persist()
        logger.info("user_revoked", user_id=user_id)
        return AccessChange(user_id=user_id, changed=True, persisted=persisted)

    def describe(self) -> list[ApprovedUser]:
        return [
            ApprovedUser(user_id=user_id, is_admin=self.is_admin(user_id))
            for user_id in self._approved
        ]

    def __contains__(self, user_id: int) -> bool:
        return self.is_approved(user_id)

    def _persist(self) -> bool:
        if self._store is None:
            return True
        return self._store.save(self.list())

    # Defined last: the name shadows the builtin inside the class body
    def list(self) -> list[int]:
        return list(self._approved)
