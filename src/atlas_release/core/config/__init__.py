# src/atlas_release/core/config/__init__.py

"""
Camada de configuração do Atlas Release.

Responsabilidades do pacote:
    - Carregamento de documentos YAML/JSON (configuração e definições)
    - Resolução da configuração final via deep-merge determinístico
    - Validação e tipagem da configuração do engine (EngineSettings)
    - Hash canônico para rastreabilidade

Limites explícitos:
    - Não executa pipeline
    - Não interage com Engine ou actions diretamente
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    DuplicateStepNameError,
    InvalidConfigRootTypeError,
    InvalidDefinitionError,
    InvalidScheduleError,
    InvalidSettingError,
    MissingActionError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash
from .loader import load_config, load_document
from .merge import deep_merge
from .settings import DEFAULT_CONFIG, EngineSettings

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "DuplicateStepNameError",
    "InvalidConfigRootTypeError",
    "InvalidDefinitionError",
    "InvalidScheduleError",
    "InvalidSettingError",
    "MissingActionError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "load_config",
    "load_document",
    "deep_merge",
    "DEFAULT_CONFIG",
    "EngineSettings",
]
