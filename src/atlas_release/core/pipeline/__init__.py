# src/atlas_release/core/pipeline/__init__.py
"""
Pipeline do Atlas Release.

Módulos:
    - types      → tipos canônicos (definições, Run, resultados)
    - action     → protocolo de Action
    - registry   → ActionRegistry
    - context    → contexto isolado de Step
    - definition → carregamento e validação de PipelineDefinitions

Este pacote não reexporta símbolos; importe a partir dos módulos.
"""
