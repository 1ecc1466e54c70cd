# src/atlas_release/actions/checkout.py
"""
Action `checkout`: materializa o código-fonte no workspace do Run.

Parâmetros:
    - source (str, obrigatório): diretório local com o código-fonte
    - clean (bool, default True): limpa o diretório de destino antes da cópia;
      com `clean: false`, arquivos existentes são mantidos (e sobrescritos
      quando presentes na origem)

Diretórios `.git` não são copiados. A action não declara output paths.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any, Mapping

from atlas_release.core.pipeline.context import ActionContext
from atlas_release.core.pipeline.types import ActionOutcome


class CheckoutAction:
    """Copia um diretório local para o diretório de trabalho do Step."""

    name = "checkout"

    def run(self, parameters: Mapping[str, Any], context: ActionContext) -> ActionOutcome:
        source = parameters.get("source")
        if not isinstance(source, str) or not source.strip():
            raise ValueError("parâmetro 'source' deve ser um caminho não vazio")

        src = Path(source).expanduser()
        if not src.is_dir():
            return ActionOutcome.failure(exit_code=1, summary=f"source directory not found: {src}")

        target = Path(context.working_directory)
        if parameters.get("clean", True):
            for child in target.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()

        shutil.copytree(src, target, dirs_exist_ok=True, ignore=shutil.ignore_patterns(".git"))
        copied = sum(1 for p in target.rglob("*") if p.is_file())
        context.log(level="INFO", message=f"checked out {src} ({copied} files)")
        return ActionOutcome.success(summary=f"checked out {src}")
