# src/atlas_release/core/ledger/ledger.py
"""
Run Ledger do Atlas Release.

Armazena o estado terminal de cada Run como um registro imutável, com
persistência opcional em JSON (um arquivo `<run_id>.json` por Run).

Decisões arquiteturais:
    - Apenas Runs terminais são aceitos
    - Registros são snapshots profundos: mutações posteriores no Run não
      alteram o que foi gravado
    - Um `run_id` é gravado uma única vez (segunda gravação → LedgerConflictError)
    - Locks por `run_id`; gravações de Runs distintos não se bloqueiam
    - O lock de um `run_id` é descartado assim que o registro existe

Invariantes:
    - `get` devolve sempre uma cópia nova, reconstruída do registro
    - `runs` é ordenado por `started_at` (empate: `run_id`)

Limites explícitos:
    - Não executa Runs
    - Não apaga nem compacta registros
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from atlas_release.core.exceptions import LedgerConflictError, RunStateError
from atlas_release.core.pipeline.types import Run, RunStatus
from atlas_release.core.traceability.record import (
    load_record,
    record_to_run,
    run_to_record,
    save_record,
)


LOGGER = logging.getLogger(__name__)


class RunLedger:
    """Registro durável (opcionalmente em disco) de Runs terminais."""

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self.directory = Path(directory) if directory is not None else None
        self._records: Dict[str, Dict[str, Any]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        if self.directory is not None:
            self._load_directory()

    def _load_directory(self) -> None:
        assert self.directory is not None
        if not self.directory.exists():
            return
        for path in sorted(self.directory.glob("*.json")):
            record = load_record(path)
            self._records[record["run_id"]] = record
        LOGGER.debug("ledger loaded %d runs from %s", len(self._records), self.directory)

    def _lock_for(self, run_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(run_id, threading.Lock())

    def _release_lock(self, run_id: str) -> None:
        # Só chamado com o run_id já gravado: quem chegar depois vê o registro.
        with self._locks_guard:
            self._locks.pop(run_id, None)

    # ------------------------------------------------------------------
    # Escrita
    # ------------------------------------------------------------------
    def record(self, run: Run) -> Dict[str, Any]:
        """
        Grava o estado terminal de um Run.

        Returns:
            Dict[str, Any]: O registro gravado.

        Raises:
            RunStateError: Se o Run não estiver em status terminal.
            LedgerConflictError: Se o `run_id` já tiver sido gravado.
        """
        if not run.is_terminal:
            raise RunStateError(
                message="Apenas Runs terminais podem ser gravados no ledger",
                details={"run_id": run.run_id, "status": run.status.value},
            )

        with self._lock_for(run.run_id):
            if run.run_id in self._records:
                self._release_lock(run.run_id)
                raise LedgerConflictError(
                    message=f"Run '{run.run_id}' já registrado no ledger",
                    details={"run_id": run.run_id},
                    hint="Registros do ledger são imutáveis; use um novo run_id.",
                )
            record = run_to_record(run)
            if self.directory is not None:
                save_record(record, self.directory / f"{run.run_id}.json")
            self._records[run.run_id] = record
            self._release_lock(run.run_id)

        LOGGER.info("run %s recorded (%s)", run.run_id, run.status.value)
        return record

    # ------------------------------------------------------------------
    # Leitura
    # ------------------------------------------------------------------
    def get(self, run_id: str) -> Optional[Run]:
        record = self._records.get(run_id)
        if record is None:
            return None
        return record_to_run(record)

    def runs(self, definition_id: Optional[str] = None) -> List[Run]:
        """Runs gravados (filtrados por definição, se informada), do mais antigo ao mais novo."""
        records = [
            r for r in list(self._records.values())
            if definition_id is None or r["definition_id"] == definition_id
        ]
        records.sort(key=lambda r: (r["started_at"] or "", r["run_id"]))
        return [record_to_run(r) for r in records]

    def last_successful(self, definition_id: str) -> Optional[Run]:
        """Run SUCCEEDED mais recente da definição, ou None."""
        succeeded = [
            r for r in list(self._records.values())
            if r["definition_id"] == definition_id and r["status"] == RunStatus.SUCCEEDED.value
        ]
        if not succeeded:
            return None
        latest = max(succeeded, key=lambda r: (r["finished_at"] or r["started_at"] or "", r["run_id"]))
        return record_to_run(latest)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._records
