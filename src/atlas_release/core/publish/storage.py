# src/atlas_release/core/publish/storage.py
"""
Colaborador de storage de artefatos.

O core conhece apenas o protocolo `ArtifactStorage`:

    store(name, paths) -> storage_handle
    fetch(storage_handle) -> paths

`LocalArtifactStorage` é a implementação de referência baseada em
diretório: cada artefato vive em `<root>/<handle>/`, com um `manifest.json`
listando os arquivos na ordem em que foram publicados.

Decisões (v1):
- Handle determinístico: nome + SHA-256 do conteúdo (mesmo conteúdo, mesmo handle)
- Estrutura relativa preservada a partir do diretório comum dos arquivos
- Falhas de I/O são reportadas como StorageError (transitórias, sujeitas a retry)
"""

from __future__ import annotations

import hashlib
import json
import os
import re
import shutil
from pathlib import Path
from typing import List, Protocol, Sequence, Union, runtime_checkable

from atlas_release.core.exceptions import StorageError


MANIFEST_NAME = "manifest.json"


@runtime_checkable
class ArtifactStorage(Protocol):
    """Contrato do colaborador externo de persistência de artefatos."""

    def store(self, name: str, paths: Sequence[Union[str, Path]]) -> str:
        ...

    def fetch(self, storage_handle: str) -> List[Path]:
        ...


def _slug(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip("-") or "artifact"


class LocalArtifactStorage:
    """Storage de artefatos em um diretório local."""

    def __init__(self, *, root: Union[str, Path]):
        self.root = Path(root)

    def _digest(self, name: str, files: Sequence[Path], rel: Sequence[str]) -> str:
        h = hashlib.sha256(name.encode("utf-8"))
        for f, r in zip(files, rel):
            h.update(r.encode("utf-8"))
            with f.open("rb") as fh:
                for chunk in iter(lambda: fh.read(1024 * 1024), b""):
                    h.update(chunk)
        return h.hexdigest()[:16]

    def store(self, name: str, paths: Sequence[Union[str, Path]]) -> str:
        files = [Path(p) for p in paths]
        try:
            for f in files:
                if not f.is_file():
                    raise FileNotFoundError(str(f))

            if files:
                common = Path(os.path.commonpath([str(f.resolve().parent) for f in files]))
                rel = [f.resolve().relative_to(common).as_posix() for f in files]
            else:
                rel = []

            handle = f"{_slug(name)}-{self._digest(name, files, rel)}"
            target = self.root / handle
            if (target / MANIFEST_NAME).exists():
                return handle

            staging = self.root / f".{handle}.tmp"
            shutil.rmtree(staging, ignore_errors=True)
            for f, r in zip(files, rel):
                dest = staging / r
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(f, dest)
            staging.mkdir(parents=True, exist_ok=True)
            (staging / MANIFEST_NAME).write_text(
                json.dumps({"name": name, "files": rel}, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            shutil.rmtree(target, ignore_errors=True)
            staging.rename(target)
            return handle
        except OSError as e:
            raise StorageError(
                message=f"Falha ao armazenar artefato '{name}'",
                details={"name": name, "exc_type": e.__class__.__name__, "exc_message": str(e)},
                hint="Verifique permissões e espaço livre no diretório de storage.",
            ) from e

    def fetch(self, storage_handle: str) -> List[Path]:
        target = self.root / storage_handle
        manifest = target / MANIFEST_NAME
        if not manifest.exists():
            raise KeyError(storage_handle)
        data = json.loads(manifest.read_text(encoding="utf-8"))
        return [target / r for r in data.get("files", [])]
