"""
MockSASession -- test helper that wraps an AsyncMock session with a call
queue dispatcher, plus a session factory so repositories that open their own
sessions (`async with factory() as session`) can be driven from tests.

Usage:
    session = MockSASession()
    session.returns_one(city)              # next execute -> scalars().first()
    session.returns_many([c1, c2])         # next execute -> scalars().all()
    session.returns_none()                 # next execute -> scalars().first() = None
    session.returns_row(42)                # next execute -> .first() = (42,)
    session.raises(OperationalError(...))  # next execute raises

    repo = CityRegistry(session.factory)

Chain for sequential calls:
    session.returns_row(1).returns_one(city)

Assert via:
    session.mock.execute.assert_called_once()
    session.mock.commit.assert_called_once()
    session.statements()                   # the statements passed to execute()
"""

from __future__ import annotations

from collections import deque
from typing import Any
from unittest.mock import AsyncMock, MagicMock


class _ScalarsResult:
    """Mock for result.scalars() return value."""

    def __init__(self, items: list[Any] | None, single: Any | None = None):
        self._items = items
        self._single = single

    def all(self) -> list[Any]:
        return self._items if self._items is not None else []

    def first(self) -> Any | None:
        if self._single is not None:
            return self._single
        if self._items:
            return self._items[0]
        return None


class _ExecuteResult:
    """Mock for session.execute() return value."""

    def __init__(
        self,
        *,
        scalars_items: list[Any] | None = None,
        scalars_single: Any | None = None,
        row: tuple | None = None,
    ):
        self._scalars_items = scalars_items
        self._scalars_single = scalars_single
        self._row = row

    def scalars(self) -> _ScalarsResult:
        return _ScalarsResult(self._scalars_items, self._scalars_single)

    def first(self) -> tuple | None:
        return self._row


class _Raise:
    def __init__(self, exc: BaseException):
        self.exc = exc


class MockSASession:
    """
    Test helper wrapping an AsyncMock session with a call queue dispatcher
    for sequential return values.
    """

    def __init__(self) -> None:
        self._queue: deque[Any] = deque()
        self.mock = AsyncMock()
        self.mock.commit = AsyncMock()
        self.mock.rollback = AsyncMock()
        self.mock.close = AsyncMock()
        self.mock.add = MagicMock()
        self.mock.add_all = MagicMock()

        async def _execute_side_effect(*args, **kwargs):
            if self._queue:
                item = self._queue.popleft()
                if isinstance(item, _Raise):
                    raise item.exc
                return item
            # Default: empty result
            return _ExecuteResult()

        self.mock.execute = AsyncMock(side_effect=_execute_side_effect)

        ctx = AsyncMock()
        ctx.__aenter__ = AsyncMock(return_value=self.mock)
        ctx.__aexit__ = AsyncMock(return_value=False)
        self.factory = MagicMock(return_value=ctx)

    def returns_one(self, obj: Any) -> MockSASession:
        """Next execute() call returns this single object via scalars().first()."""
        self._queue.append(_ExecuteResult(scalars_single=obj))
        return self

    def returns_many(self, items: list[Any]) -> MockSASession:
        """Next execute() call returns these items via scalars().all()."""
        self._queue.append(_ExecuteResult(scalars_items=items))
        return self

    def returns_none(self) -> MockSASession:
        """Next execute() call returns None via scalars().first() and .first()."""
        self._queue.append(_ExecuteResult())
        return self

    def returns_row(self, *values: Any) -> MockSASession:
        """Next execute() call returns a row tuple via .first()."""
        self._queue.append(_ExecuteResult(row=values))
        return self

    def raises(self, exc: BaseException) -> MockSASession:
        """Next execute() call raises exc."""
        self._queue.append(_Raise(exc))
        return self

    def statements(self) -> list[Any]:
        return [c.args[0] for c in self.mock.execute.call_args_list]
