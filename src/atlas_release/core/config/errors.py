# src/atlas_release/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Atlas Release.

Este módulo define a hierarquia de exceções levantadas durante o
carregamento de configuração do engine e de definições de pipeline.

Toda exceção aqui é fatal e reportada antes que qualquer Run seja criado.

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa falha de execução de Step
"""


class ConfigError(Exception):
    """
    Exceção base para configuração ou PipelineDefinition malformada.

    Permite captura genérica de erros estruturais e distinção clara entre
    falhas de carregamento e falhas de execução.
    """


class DefaultsNotFoundError(ConfigError):
    """Arquivo de configuração obrigatório não encontrado."""


class UnsupportedConfigFormatError(ConfigError):
    """
    Formato de arquivo não suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """O conteúdo raiz do documento não é um dicionário (`dict`)."""


class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"publish": {"allow_empty": false}}
        - override: {"publish": "strict"}

    Nenhum merge parcial é produzido em caso de conflito.
    """


class InvalidSettingError(ConfigError):
    """Valor de configuração do engine fora do domínio permitido."""


class InvalidDefinitionError(ConfigError):
    """PipelineDefinition estruturalmente inválida (campos ausentes, tipos errados, steps vazios)."""


class DuplicateStepNameError(InvalidDefinitionError):
    """Dois Steps da mesma definição compartilham o mesmo nome."""


class InvalidScheduleError(InvalidDefinitionError):
    """
    Expressão de schedule malformada ou que nunca produz um disparo futuro.

    Rejeitada no carregamento (fail fast), nunca durante a avaliação.
    """


class MissingActionError(InvalidDefinitionError):
    """Step referencia uma action que não está registrada no ActionRegistry."""
