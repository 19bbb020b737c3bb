from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol


class TransactionManager(Protocol):
    """Unit of work around repository writes. Nested start() joins the outer block."""

    @asynccontextmanager
    async def start(self) -> AsyncIterator[None]:
        yield
