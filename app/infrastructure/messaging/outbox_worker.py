"""Worker para reintentar envíos al proveedor desde el outbox."""

import asyncio
import logging
from typing import Awaitable, Callable, Sequence
from uuid import uuid4

logger = logging.getLogger(__name__)

BatchRunner = Callable[[str, int], Awaitable[Sequence]]


class OutboxWorker:
    """
    Worker que procesa eventos SUBMIT_SUPPLIER de forma periódica.

    Cada ciclo delega en un runner que abre su propia sesión y ejecuta
    ProcessSupplierRetryUseCase.process_due; el claim con lock por evento
    evita que dos workers envíen la misma reserva.

    Características:
    - Polling configurable
    - Graceful shutdown
    """

    def __init__(
        self,
        run_batch: BatchRunner,
        worker_id: str | None = None,
        poll_interval_seconds: float = 5.0,
        batch_size: int = 10,
    ) -> None:
        """
        Inicializa el worker.

        Args:
            run_batch: Corrutina (worker_id, batch_size) -> eventos procesados.
            worker_id: Identificador único del worker (auto-generado si no se provee).
            poll_interval_seconds: Intervalo entre polls en segundos.
            batch_size: Número máximo de eventos a procesar por ciclo.
        """
        self._run_batch = run_batch
        self._worker_id = worker_id or f"worker-{uuid4().hex[:8]}"
        self._poll_interval = poll_interval_seconds
        self._batch_size = batch_size
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> int:
        """Procesa un batch; retorna el número de eventos procesados."""
        processed = await self._run_batch(self._worker_id, self._batch_size)
        if processed:
            logger.info(
                "Outbox batch processed",
                extra={"worker_id": self._worker_id, "processed": len(processed)},
            )
        return len(processed)

    async def start(self) -> None:
        """Inicia el worker en modo polling."""
        self._running = True
        logger.info("Outbox worker started", extra={"worker_id": self._worker_id})

        while self._running:
            try:
                processed = await self.run_once()
            except Exception:
                logger.exception("Outbox worker cycle failed", extra={"worker_id": self._worker_id})
                processed = 0
            if processed == 0:
                await asyncio.sleep(self._poll_interval)

    def start_background(self) -> asyncio.Task:
        self._task = asyncio.create_task(self.start())
        return self._task

    async def stop(self) -> None:
        """Detiene el worker de forma graceful."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Outbox worker stopped", extra={"worker_id": self._worker_id})
