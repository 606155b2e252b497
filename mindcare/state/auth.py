"""Mock credential exchange with a persisted auth snapshot."""

import asyncio
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import structlog

from ..core.errors import AuthError, SnapshotError
from .persistence import AUTH_NAMESPACE, SnapshotStorage


logger = structlog.get_logger()

MOCK_TOKEN = "mock-jwt-token"


@dataclass(frozen=True)
class User:
    id: str
    email: str
    username: str


class AuthStore:
    """
    Holds the signed-in user. There is no real verification: any non-blank
    credentials are accepted after a simulated round trip.
    """

    def __init__(
        self,
        storage: Optional[SnapshotStorage] = None,
        latency: float = 0.8,
        namespace: str = AUTH_NAMESPACE,
    ):
        self.storage = storage
        self.latency = latency
        self.namespace = namespace

        self.user: Optional[User] = None
        self.token: Optional[str] = None
        self.is_authenticated = False
        self.is_loading = False

    def snapshot(self) -> Dict[str, Any]:
        return {
            "user": asdict(self.user) if self.user else None,
            "token": self.token,
            "is_authenticated": self.is_authenticated,
        }

    def load(self) -> bool:
        if self.storage is None:
            return False
        try:
            state = self.storage.load(self.namespace)
            if state is None:
                return False
            user = state.get("user")
            self.user = User(**user) if user else None
            self.token = state.get("token")
            self.is_authenticated = bool(state.get("is_authenticated"))
        except (SnapshotError, TypeError) as e:
            logger.error("Failed to load auth snapshot", error=str(e))
            return False
        return True

    def persist(self) -> None:
        if self.storage is not None:
            self.storage.save(self.namespace, self.snapshot())

    async def _exchange(self, user: User) -> None:
        self.is_loading = True
        try:
            if self.latency > 0:
                await asyncio.sleep(self.latency)
            self.user = user
            self.token = MOCK_TOKEN
            self.is_authenticated = True
            self.persist()
        finally:
            self.is_loading = False

    async def login(self, email: str, password: str) -> User:
        if not email.strip() or not password:
            logger.warning("Login rejected, missing credentials")
            raise AuthError("Email and password are required")

        await self._exchange(User(id="1", email=email, username=email.split("@")[0]))
        logger.info("User logged in", username=self.user.username)
        return self.user

    async def register(self, username: str, email: str, password: str) -> User:
        if not username.strip() or not email.strip() or not password:
            logger.warning("Registration rejected, missing fields")
            raise AuthError("Username, email and password are required")

        await self._exchange(User(id=str(int(time.time() * 1000)), email=email, username=username))
        logger.info("User registered", username=username)
        return self.user

    def logout(self) -> None:
        self.user = None
        self.token = None
        self.is_authenticated = False
        self.persist()
        logger.info("User logged out")
