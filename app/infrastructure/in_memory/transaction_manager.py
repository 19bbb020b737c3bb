from contextlib import asynccontextmanager

from app.application.interfaces.transaction_manager import TransactionManager


class NoopTransactionManager(TransactionManager):
    """In-memory repos write immediately; only the nesting is tracked."""

    def __init__(self) -> None:
        self.depth = 0
        self.completed_blocks = 0

    @asynccontextmanager
    async def start(self):
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1
            if self.depth == 0:
                self.completed_blocks += 1
