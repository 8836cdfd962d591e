"""The user record."""

from dataclasses import dataclass, asdict
from typing import Any, Dict


@dataclass
class User:
    """
    One user.

    ``id`` belongs to the store: it is assigned on create and never taken
    from client input.
    """

    id: int
    name: str
    email: str

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape: ``{"id": 1, "name": "Alice", "email": "alice@example.com"}``"""
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "User":
        """
        Build an unsaved candidate from a request body.

        Keys match case-insensitively (``"Name"`` and ``"name"`` both
        work). Values are taken as sent, so validation sees exactly what
        the client posted. Any ``id`` in the payload is ignored.
        """
        fields = {key.lower(): value for key, value in payload.items()}
        return cls(id=0, name=fields.get("name"), email=fields.get("email"))
