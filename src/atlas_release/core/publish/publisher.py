# src/atlas_release/core/publish/publisher.py
"""
Artifact Publisher do Atlas Release.

Coleta os arquivos declarados por um Run bem-sucedido e os entrega ao
colaborador de storage, recebendo de volta um `storage_handle` estável.

Regras (v1):
    - Só publica Runs com status SUCCEEDED (qualquer outro → RunStateError)
    - Arquivos candidatos são os `captured_output_paths` do Run, na ordem dos
      Steps; cada ArtifactSpec seleciona os que correspondem ao seu glob
    - Zero arquivos → EmptyArtifactError, a menos que `allow_empty` esteja ativo
    - Todos os ArtifactSpecs são resolvidos antes do primeiro upload: uma falha
      estrita não produz nenhum Artifact
    - Falhas do storage são repetidas com backoff exponencial (tenacity);
      esgotadas as tentativas, levanta PublishError
    - Idempotência por (run_id, nome do artefato): um artefato já publicado é
      devolvido sem novo upload
    - O cache de idempotência guarda os `max_cached` artefatos mais recentes

O Publisher não altera o Run; o Orchestrator registra o resultado da
publicação separadamente do status do build.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Sequence, Tuple

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from atlas_release.core.config.settings import EngineSettings
from atlas_release.core.exceptions import (
    EmptyArtifactError,
    PublishError,
    RunStateError,
    StorageError,
)
from atlas_release.core.pipeline.types import Artifact, ArtifactSpec, Run, RunStatus

from .storage import ArtifactStorage


LOGGER = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Normaliza caminhos relativos para POSIX, sem prefixo `./`."""
    p = PurePosixPath(str(path).replace("\\", "/")).as_posix()
    while p.startswith("./"):
        p = p[2:]
    return p


def match_paths(pattern: str, candidates: Sequence[str]) -> List[str]:
    """Candidatos que correspondem ao glob, na ordem original."""
    pat = normalize_path(pattern)
    return [c for c in candidates if fnmatchcase(normalize_path(c), pat)]


class ArtifactPublisher:
    """Publica os artefatos declarados de Runs bem-sucedidos."""

    def __init__(
        self,
        storage: ArtifactStorage,
        *,
        allow_empty: bool = False,
        max_attempts: int = 3,
        backoff_initial_s: float = 0.5,
        backoff_max_s: float = 8.0,
        sleep: Callable[[float], None] = time.sleep,
        max_cached: int = 1024,
    ):
        self.storage = storage
        self.allow_empty = allow_empty
        self.max_attempts = max_attempts
        self.backoff_initial_s = backoff_initial_s
        self.backoff_max_s = backoff_max_s
        self._sleep = sleep
        self.max_cached = max_cached
        self._published: OrderedDict[Tuple[str, str], Artifact] = OrderedDict()
        self._in_flight: Dict[Tuple[str, str], threading.Event] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        storage: ArtifactStorage,
        settings: EngineSettings,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "ArtifactPublisher":
        return cls(
            storage,
            allow_empty=settings.allow_empty_artifacts,
            max_attempts=settings.publish_max_attempts,
            backoff_initial_s=settings.publish_backoff_initial_s,
            backoff_max_s=settings.publish_backoff_max_s,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    # Resolução
    # ------------------------------------------------------------------
    def resolve(self, run: Run) -> List[Tuple[ArtifactSpec, List[str]]]:
        """Resolve os arquivos de cada ArtifactSpec (sem efeitos colaterais)."""
        candidates = run.output_paths()
        resolved: List[Tuple[ArtifactSpec, List[str]]] = []
        for spec in run.definition.artifacts:
            matches = [normalize_path(p) for p in match_paths(spec.path, candidates)]
            if not matches and not self.allow_empty:
                raise EmptyArtifactError(
                    message=f"Nenhum arquivo corresponde ao artefato '{spec.name}'",
                    details={"run_id": run.run_id, "artifact": spec.name, "path": spec.path,
                             "candidates": list(candidates)},
                    hint="Verifique se o Step de build produziu os arquivos e se o glob está correto.",
                )
            resolved.append((spec, matches))
        return resolved

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------
    def _store(self, name: str, paths: Sequence[str]) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_initial_s, max=self.backoff_max_s),
            retry=retry_if_exception_type((StorageError, OSError)),
            sleep=self._sleep,
            reraise=False,
        )
        try:
            for attempt in retrying:
                with attempt:
                    n = attempt.retry_state.attempt_number
                    if n > 1:
                        LOGGER.warning("retrying upload of %s (attempt %d/%d)", name, n, self.max_attempts)
                    return self.storage.store(name, list(paths))
        except RetryError as e:
            last = e.last_attempt.exception()
            raise PublishError(
                message=f"Falha ao publicar artefato '{name}' após {self.max_attempts} tentativas",
                details={
                    "artifact": name,
                    "attempts": self.max_attempts,
                    "last_error": str(last) if last is not None else None,
                },
                hint="Verifique a disponibilidade do storage; o build em si foi concluído com sucesso.",
            ) from last
        except Exception as e:
            raise PublishError(
                message=f"Erro inesperado do storage ao publicar '{name}'",
                details={"artifact": name, "exc_type": e.__class__.__name__, "exc_message": str(e)},
            ) from e
        raise PublishError(message=f"Storage não devolveu handle para '{name}'", details={"artifact": name})

    def _publish_one(self, run: Run, spec: ArtifactSpec, paths: List[str]) -> Artifact:
        key = (run.run_id, spec.name)
        while True:
            with self._lock:
                existing = self._published.get(key)
                if existing is not None:
                    LOGGER.info("artifact %s already published for run %s", spec.name, run.run_id)
                    return existing
                pending = self._in_flight.get(key)
                if pending is None:
                    pending = self._in_flight[key] = threading.Event()
                    break
            # Outra chamada está publicando o mesmo artefato: aguarda e reavalia.
            pending.wait()

        try:
            physical = [str(Path(run.workspace) / p) if run.workspace is not None else p for p in paths]
            handle = self._store(spec.name, physical)
            artifact = Artifact(
                name=spec.name,
                source_run_id=run.run_id,
                paths=tuple(paths),
                storage_handle=handle,
            )
            with self._lock:
                self._published[key] = artifact
                while len(self._published) > self.max_cached:
                    self._published.popitem(last=False)
        finally:
            with self._lock:
                self._in_flight.pop(key, None)
            pending.set()

        LOGGER.info("artifact %s published for run %s (%s)", spec.name, run.run_id, handle)
        return artifact

    def publish(self, run: Run) -> List[Artifact]:
        """
        Publica os artefatos declarados de um Run SUCCEEDED.

        Chamadas concorrentes para o mesmo (run_id, artefato) resultam em um
        único upload; as demais aguardam e recebem o mesmo Artifact.

        Returns:
            List[Artifact]: Artefatos na ordem de declaração.

        Raises:
            RunStateError: Se o Run não estiver SUCCEEDED.
            EmptyArtifactError: Se um glob não corresponder a nada (modo estrito).
            PublishError: Se o storage falhar após as tentativas.
        """
        if run.status != RunStatus.SUCCEEDED:
            raise RunStateError(
                message="Publicação só é permitida para Runs SUCCEEDED",
                details={"run_id": run.run_id, "status": run.status.value},
            )

        artifacts: List[Artifact] = []
        for spec, paths in self.resolve(run):
            if not paths:
                LOGGER.warning("artifact %s matched no files in run %s; skipped", spec.name, run.run_id)
                continue
            artifacts.append(self._publish_one(run, spec, paths))
        return artifacts
