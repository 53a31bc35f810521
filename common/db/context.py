"""
The session of the enclosing `transaction()` block, if any.

Repositories called inside one transaction share its session through this
ContextVar, so their writes commit or roll back together:

    async with transaction():
        await subscription_repo.compare_and_swap(...)
        await webhook_event_repo.mark_completed(...)

Each asyncio task sees its own value, so concurrent requests never share a
session.
"""

from contextvars import ContextVar, Token
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

_transaction_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_transaction_session", default=None
)


def get_current_session() -> Optional[AsyncSession]:
    return _transaction_session.get()


def set_current_session(session: AsyncSession) -> Token:
    return _transaction_session.set(session)


def reset_current_session(token: Token) -> None:
    _transaction_session.reset(token)


def in_transaction() -> bool:
    return _transaction_session.get() is not None
