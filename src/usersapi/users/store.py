"""
=============================================================================
IN-MEMORY USER STORE
=============================================================================

The only shared mutable state in the process. Worker threads serve
requests concurrently, so every access goes through one lock:

    ┌──────────────────┬──────────────────────────────────────────────────┐
    │ create           │ lock { next id = max + 1; append }                │
    │ update           │ lock { find; overwrite name and email }           │
    │ delete           │ lock { find; remove }                             │
    │ list / get       │ lock { copy }                                     │
    └──────────────────┴──────────────────────────────────────────────────┘

Without the lock on create, two concurrent POSTs can both read max = 2 and
both insert id 3. Without it on delete, a delete can remove a record while
an update is halfway through overwriting it.

Callers only ever get copies. Mutating a returned User does not change
the store.

Ids: next id is ``max(existing) + 1``, or 1 when empty. Deleting the
highest id and then creating hands that id out again; ids of records that
still exist are never duplicated.

=============================================================================
"""

import logging
import threading
from dataclasses import replace
from typing import Iterable, List, Optional

from ..errors import UserNotFound, ValidationFailed
from .models import User
from .validation import validate_user


logger = logging.getLogger(__name__)


SEED_USERS = (
    User(id=1, name="Alice", email="alice@example.com"),
    User(id=2, name="Bob", email="bob@example.com"),
)


class UserStore:
    """
    Thread-safe user collection.

        store = UserStore.seeded()
        user = store.create(User(id=0, name="Carl", email="carl@x.com"))
        user.id                                  # 3
        store.update(3, User(id=0, name="Carla", email="carla@x.com"))
        store.delete(3)

    Raises UserNotFound for unknown ids and ValidationFailed for invalid
    records; nothing is changed when either is raised.
    """

    def __init__(self, users: Optional[Iterable[User]] = None):
        self._users: List[User] = [replace(u) for u in (users or ())]
        self._lock = threading.Lock()

    @classmethod
    def seeded(cls) -> "UserStore":
        """A store holding the two startup records (Alice and Bob)."""
        return cls(SEED_USERS)

    def list(self) -> List[User]:
        with self._lock:
            return [replace(u) for u in self._users]

    def get(self, user_id: int) -> User:
        with self._lock:
            return replace(self._find(user_id))

    def create(self, candidate: User) -> User:
        """
        Validate and insert. The candidate's id is ignored.

        Raises:
            ValidationFailed: With every violation found.
        """
        violations = validate_user(candidate)
        if violations:
            raise ValidationFailed(violations)

        with self._lock:
            next_id = max((u.id for u in self._users), default=0) + 1
            user = User(id=next_id, name=candidate.name, email=candidate.email)
            self._users.append(user)

        logger.debug(f"Created user {user.id}")
        return replace(user)

    def update(self, user_id: int, patch: User) -> User:
        """
        Overwrite name and email of an existing record.

        The lookup is done first so that an unknown id is reported as not
        found even when the patch is invalid too.

        Raises:
            UserNotFound: No record has ``user_id``.
            ValidationFailed: The patch is invalid.
        """
        with self._lock:
            self._find(user_id)

        violations = validate_user(patch)
        if violations:
            raise ValidationFailed(violations)

        with self._lock:
            # Looked up again: it may have been deleted while validating
            user = self._find(user_id)
            user.name = patch.name
            user.email = patch.email
            updated = replace(user)

        logger.debug(f"Updated user {user_id}")
        return updated

    def delete(self, user_id: int) -> None:
        """
        Raises:
            UserNotFound: No record has ``user_id``.
        """
        with self._lock:
            self._users.remove(self._find(user_id))

        logger.debug(f"Deleted user {user_id}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)

    def _find(self, user_id: int) -> User:
        # Caller holds self._lock
        for user in self._users:
            if user.id == user_id:
                return user
        raise UserNotFound(user_id)
