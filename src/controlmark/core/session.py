"""Session context: the bearer token and signed-in user.

The session is created explicitly and passed to the services and workflow.
It can be hydrated from a persisted JSON file and is torn down on logout,
which also runs any registered logout hooks.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Optional

import pydantic

from ..models.session import User

logger = logging.getLogger(__name__)

DEFAULT_SESSION_PATH = Path.home() / ".controlmark" / "session.json"


class Session:
    def __init__(
        self,
        token: Optional[str] = None,
        user: Optional[User] = None,
        path: Optional[Path] = None,
    ):
        self.token = token
        self.user = user
        self.path = path
        self._logout_hooks: list[Callable[[], None]] = []

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user)

    def auth_headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def on_logout(self, hook: Callable[[], None]) -> None:
        self._logout_hooks.append(hook)

    @classmethod
    def hydrate(cls, path: Path = DEFAULT_SESSION_PATH) -> "Session":
        """Restore a session from disk.

        A missing file gives an anonymous session; a corrupt one is removed.
        """
        if not path.exists():
            return cls(path=path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            token = data.get("token") or None
            user = User.model_validate(data["user"]) if data.get("user") else None
        except (ValueError, KeyError, AttributeError, pydantic.ValidationError) as e:
            logger.warning("Discarding unreadable session file %s: %s", path, e)
            path.unlink(missing_ok=True)
            return cls(path=path)
        if not (token and user):
            return cls(path=path)
        return cls(token=token, user=user, path=path)

    def persist(self, path: Optional[Path] = None) -> Path:
        target = path or self.path or DEFAULT_SESSION_PATH
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "token": self.token,
            "user": self.user.model_dump(mode="json") if self.user else None,
        }
        target.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        self.path = target
        return target

    def teardown(self) -> None:
        """Log out: clear credentials, remove the persisted file, run hooks."""
        self.token = None
        self.user = None
        if self.path is not None:
            self.path.unlink(missing_ok=True)
        for hook in list(self._logout_hooks):
            hook()
