"""
Per-user refresh token registry.

The registry is the set of refresh tokens a user may still exchange, one row
per signed-in device. It is capped (oldest evicted first) and every record
lapses after a fixed retention window. All mutations commit before returning.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterable, Iterator, List

from sqlalchemy.exc import SQLAlchemyError

from models.base_model import utcnow
from models.refresh_token import RefreshToken
from utils.exceptions import TokenRevokedError

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 5
DEFAULT_RETENTION = timedelta(days=7)


class BoundedTokenQueue:
    """Fixed-capacity FIFO over records ordered oldest first."""

    def __init__(self, records: Iterable = (), capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items = list(records)

    def push(self, record) -> list:
        """Append ``record``, returning whatever had to be evicted to make room."""
        evicted = []
        while len(self._items) >= self.capacity:
            evicted.append(self._items.pop(0))
        self._items.append(record)
        return evicted

    def remove(self, token: str) -> list:
        removed = [r for r in self._items if r.token == token]
        self._items = [r for r in self._items if r.token != token]
        return removed

    def clear(self) -> list:
        removed, self._items = self._items, []
        return removed

    def __contains__(self, token) -> bool:
        return any(r.token == token for r in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator:
        return iter(self._items)


class TokenRegistry:
    def __init__(self, storage, capacity: int = DEFAULT_CAPACITY, retention: timedelta = DEFAULT_RETENTION):
        self._storage = storage
        self.capacity = capacity
        self.retention = retention

    @contextmanager
    def _unit_of_work(self):
        session = self._storage.get_session()
        try:
            yield session
            self._storage.save()
        except (SQLAlchemyError, TokenRevokedError):
            self._storage.rollback()
            raise

    def _expire_collection(self, session, user):
        if user in session:
            session.expire(user, ["refresh_tokens"])

    def _records(self, session, user_id) -> List[RefreshToken]:
        return (
            session.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.position)
            .all()
        )

    def _purge_expired(self, session, user_id) -> int:
        return (
            session.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id, RefreshToken.expires_at <= utcnow())
            .delete()
        )

    def _push(self, session, user_id, token: str) -> RefreshToken:
        records = self._records(session, user_id)
        queue = BoundedTokenQueue(records, self.capacity)
        now = utcnow()
        record = RefreshToken(
            user_id=user_id,
            token=token,
            position=(records[-1].position + 1) if records else 1,
            created_at=now,
            expires_at=now + self.retention,
        )
        for evicted in queue.push(record):
            session.delete(evicted)
        if len(records) >= self.capacity:
            logger.info("Evicted %d oldest refresh token(s) for user %s", len(records) - self.capacity + 1, user_id)
        # Evictions must hit the database before the insert
        session.flush()
        session.add(record)
        return record

    def add_token(self, user, token: str) -> None:
        with self._unit_of_work() as session:
            self._purge_expired(session, user.id)
            self._push(session, user.id, token)
        self._expire_collection(session, user)

    def remove_token(self, user, token: str) -> int:
        with self._unit_of_work() as session:
            removed = (
                session.query(RefreshToken)
                .filter(RefreshToken.user_id == user.id, RefreshToken.token == token)
                .delete()
            )
        self._expire_collection(session, user)
        return removed

    def clear_all(self, user) -> int:
        with self._unit_of_work() as session:
            removed = session.query(RefreshToken).filter(RefreshToken.user_id == user.id).delete()
        self._expire_collection(session, user)
        return removed

    def replace_token(self, user, old_token: str, new_token: str) -> None:
        """
        Swap ``old_token`` for ``new_token`` in one transaction.

        The delete of the old record acts as a compare-and-swap: if it matched
        nothing (already rotated, logged out, or lapsed) the transaction is
        rolled back and TokenRevokedError is raised, so the user never ends up
        with neither token registered.
        """
        with self._unit_of_work() as session:
            removed = (
                session.query(RefreshToken)
                .filter(
                    RefreshToken.user_id == user.id,
                    RefreshToken.token == old_token,
                    RefreshToken.expires_at > utcnow(),
                )
                .delete()
            )
            if not removed:
                raise TokenRevokedError()
            self._purge_expired(session, user.id)
            self._push(session, user.id, new_token)
        self._expire_collection(session, user)

    def has_token(self, user, token: str) -> bool:
        if not token:
            return False
        session = self._storage.get_session()
        match = (
            session.query(RefreshToken.id)
            .filter(
                RefreshToken.user_id == user.id,
                RefreshToken.token == token,
                RefreshToken.expires_at > utcnow(),
            )
            .first()
        )
        return match is not None

    def tokens(self, user) -> List[str]:
        session = self._storage.get_session()
        now = utcnow()
        return [r.token for r in self._records(session, user.id) if r.expires_at > now]
