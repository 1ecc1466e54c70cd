# src/atlas_release/actions/outputs.py
"""Resolução de globs de saída relativos ao diretório de trabalho de um Step."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List, Optional


def as_patterns(value: Any, *, parameter: str) -> List[str]:
    """Aceita um glob (str) ou uma lista de globs; None → lista vazia."""
    if value is None:
        return []
    if isinstance(value, str):
        return [line.strip() for line in value.splitlines() if line.strip()]
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return [v for v in value if v.strip()]
    raise ValueError(f"parâmetro '{parameter}' deve ser str ou lista de str")


def resolve_outputs(
    working_directory: Path,
    patterns: Iterable[str],
    *,
    relative_to: Optional[Path] = None,
) -> List[str]:
    """
    Arquivos (não diretórios) que correspondem aos globs, como caminhos
    POSIX relativos a `relative_to` (default: o próprio diretório de trabalho).

    Steps que declaram `working-directory` resolvem os globs no subdiretório,
    mas reportam caminhos relativos ao workspace do Run.

    A ordem segue a ordem dos padrões; dentro de um padrão, ordem alfabética.
    """
    root = Path(working_directory)
    base = Path(relative_to) if relative_to is not None else root
    seen = set()
    out: List[str] = []
    for pattern in patterns:
        for match in sorted(root.glob(pattern)):
            if not match.is_file():
                continue
            rel = match.relative_to(base).as_posix()
            if rel not in seen:
                seen.add(rel)
                out.append(rel)
    return out
