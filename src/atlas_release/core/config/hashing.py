# src/atlas_release/core/config/hashing.py
"""
Forma JSON canônica e hashing de documentos.

Documentos carregados de YAML podem conter valores que o `json` não aceita
(`datetime.date` de `released: 2024-01-01`, `Path`, tuplas, mappings
somente leitura). `to_jsonable` os converte para a forma que é gravada no
Run Ledger e usada no hash, de modo que o `definition_hash` de um Run
corresponda exatamente ao snapshot persistido.

Política (v1):
    - date/datetime → ISO 8601; Path → POSIX; tuplas e sets → listas
    - chaves de mapping → str
    - JSON com chaves ordenadas e separadores compactos, UTF-8
    - SHA-256, 64 caracteres hexadecimais
"""

import hashlib
import json
from datetime import date, datetime, time
from pathlib import PurePath
from typing import Any, Dict, Mapping


def to_jsonable(value: Any) -> Any:
    """Cópia de `value` contendo apenas tipos nativos do JSON."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((to_jsonable(v) for v in value), key=repr)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, PurePath):
        return value.as_posix()
    return str(value)


def canonical_json(document: Mapping[str, Any]) -> str:
    return json.dumps(to_jsonable(document), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Hash SHA-256 da forma canônica de um documento (configuração ou definição).

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, Mapping):
        raise TypeError(f"Config para hashing deve ser dict, recebido: {type(config).__name__}")
    return hashlib.sha256(canonical_json(config).encode("utf-8")).hexdigest()
