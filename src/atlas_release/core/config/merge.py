# src/atlas_release/core/config/merge.py
"""
Deep-merge de camadas de configuração (DEFAULT_CONFIG → defaults → local).

Política de merge (v1):
    - dict sobre dict → merge recursivo por chave
    - list → substitui a lista inteira
    - None na base → chave opcional, aceita qualquer valor (ex.: ledger.directory)
    - int e float são intercambiáveis; bool não é numérico
    - qualquer outra troca de tipo → ConfigTypeConflictError com o caminho da chave

Nenhum input é mutado.
"""

from copy import deepcopy
from typing import Any, Dict

from .errors import ConfigTypeConflictError


_NUMERIC = (int, float)


def _is_number(value: Any) -> bool:
    return isinstance(value, _NUMERIC) and not isinstance(value, bool)


def _merge_value(path: str, base_value: Any, override_value: Any) -> Any:
    if isinstance(base_value, dict) and isinstance(override_value, dict):
        return _merge_dicts(path, base_value, override_value)

    if (
        base_value is None
        or override_value is None
        or type(base_value) is type(override_value)
        or (_is_number(base_value) and _is_number(override_value))
    ):
        return deepcopy(override_value)

    raise ConfigTypeConflictError(
        f"Conflito de tipo em '{path}': esperado {type(base_value).__name__}, "
        f"recebido {type(override_value).__name__}"
    )


def _merge_dicts(prefix: str, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = {key: deepcopy(value) for key, value in base.items() if key not in override}
    for key, value in override.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        merged[key] = _merge_value(path, base[key], value) if key in base else deepcopy(value)
    return merged


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Aplica `override` sobre `base` e devolve um novo dicionário.

    Raises:
        ConfigTypeConflictError: Raiz não-dict ou tipo incompatível em alguma chave.
    """
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Deep-merge requer dicts na raiz, recebido: {type(base).__name__} e {type(override).__name__}"
        )
    return _merge_dicts("", base, override)
