# src/atlas_release/__init__.py
"""
Atlas Release: núcleo de orquestração de build e release.

Este pacote raiz define o namespace público do Atlas Release: avaliação de
triggers, planejamento de Steps, execução isolada, publicação de artefatos
e registro imutável de Runs.

Arquitetura em alto nível:
    - core.config       → carregamento, merge, hashing e settings do engine
    - core.trigger      → expressões cron e avaliação de triggers
    - core.pipeline     → tipos canônicos, contexto de Step, registry e definições
    - core.engine       → planejamento (ordem topológica estável) e execução
    - core.publish      → publicação de artefatos de Runs bem-sucedidos
    - core.ledger       → registro terminal de Runs
    - core.orchestrator → trigger → plano → execução → publicação → ledger
    - actions           → actions embutidas (checkout, run-command, upload-artifact)

Limites explícitos:
    - Não interpreta sintaxes de CI de terceiros
    - Não oferece UI, secrets ou agendamento multi-tenant
"""

__version__ = "0.1.0"
