"""
Rastreabilidade do Atlas Release.

Este pacote define o Event Log canônico anexado a cada Run e a forma
serializável (registro) com que o Run Ledger persiste Runs terminais.

Princípios fundamentais:
    - Nenhum evento é emitido implicitamente
    - A ordem do Event Log reflete a ordem real de execução
    - Timestamps em UTC, ISO 8601
"""

from .events import add_event, ensure_tzaware_utc, iso, parse_iso

__all__ = [
    "add_event",
    "ensure_tzaware_utc",
    "iso",
    "parse_iso",
]
