# src/atlas_release/core/config/loader.py
"""
Loader canônico de configuração do Atlas Release.

Este módulo carrega documentos YAML/JSON do disco e resolve a configuração
efetiva do engine a partir de três camadas, em ordem de precedência:

    1. `DEFAULT_CONFIG` embutido (sempre presente)
    2. arquivo de defaults do projeto (opcional; se informado, obrigatório)
    3. arquivo local de overrides (opcional; ignorado se não existir)

Princípios fundamentais:
    - Configuração é declarativa e explícita
    - Erros estruturais são falhas fatais (ConfigError)
    - A mesma entrada sempre produz a mesma configuração final

Limites explícitos:
    - Não valida semântica de domínio (ver `settings.EngineSettings`)
    - Não interpreta PipelineDefinitions (ver `core.pipeline.definition`)
"""

from pathlib import Path
from typing import Any, Dict, Optional, Type, Union
import json

import yaml  # PyYAML

from .merge import deep_merge
from .errors import (
    ConfigError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .settings import DEFAULT_CONFIG


def load_document(
    path: Union[str, Path],
    *,
    missing_error: Type[ConfigError] = DefaultsNotFoundError,
) -> Dict[str, Any]:
    """
    Carrega um documento YAML ou JSON e valida sua estrutura básica.

    Arquivos vazios são interpretados como dicionários vazios.

    Args:
        path: Caminho para o documento.
        missing_error: Exceção levantada quando o arquivo não existe.

    Returns:
        Dict[str, Any]: Conteúdo do documento.

    Raises:
        ConfigError: Arquivo ausente (`missing_error`), formato não suportado,
            sintaxe inválida ou raiz que não é dicionário.
    """
    path = Path(path)
    if not path.exists():
        raise missing_error(f"Arquivo não encontrado: {path}")

    suffix = path.suffix.lower()

    try:
        if suffix in {".yaml", ".yml"}:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        elif suffix == ".json":
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        else:
            raise UnsupportedConfigFormatError(f"Formato não suportado: {path.suffix}")
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Documento inválido em {path}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"Config root deve ser dict, recebido: {type(data).__name__}"
        )

    return data


def load_config(
    *,
    defaults_path: Optional[str] = None,
    local_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Carrega e resolve a configuração efetiva do engine.

    Args:
        defaults_path (Optional[str]): Arquivo de defaults do projeto.
        local_path (Optional[str]): Arquivo opcional de overrides locais.

    Returns:
        Dict[str, Any]: Configuração final resolvida.

    Raises:
        DefaultsNotFoundError: Se `defaults_path` for informado e não existir.
        UnsupportedConfigFormatError: Se o formato do arquivo não for suportado.
        InvalidConfigRootTypeError: Se o conteúdo não for um dicionário.
        ConfigTypeConflictError: Se ocorrer conflito estrutural durante o merge.
    """
    effective = deep_merge(DEFAULT_CONFIG, {})

    if defaults_path is not None:
        effective = deep_merge(effective, load_document(defaults_path))

    if local_path is not None:
        local_file = Path(local_path)
        if local_file.exists():
            effective = deep_merge(effective, load_document(local_file))

    return effective
