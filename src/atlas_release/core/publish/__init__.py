# src/atlas_release/core/publish/__init__.py
"""
Publicação de artefatos do Atlas Release.

Componentes:
    - publisher → ArtifactPublisher: resolução de globs, retry e idempotência
    - storage   → contrato ArtifactStorage + implementação local em diretório

Limites explícitos:
    - Não executa Steps
    - Não altera o status do Run
"""

from .publisher import ArtifactPublisher, match_paths, normalize_path
from .storage import ArtifactStorage, LocalArtifactStorage

__all__ = [
    "ArtifactPublisher",
    "ArtifactStorage",
    "LocalArtifactStorage",
    "match_paths",
    "normalize_path",
]
