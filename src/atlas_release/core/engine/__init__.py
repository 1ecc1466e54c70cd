# src/atlas_release/core/engine/__init__.py
"""
Engine do Atlas Release.

Este pacote contém a implementação responsável por **planejar** e
**executar** Runs de pipelines de build/release.

Componentes principais:
    - planner → Step Graph Builder: ordenação topológica estável e validações estruturais
    - engine  → Execution Engine: execução sequencial, isolamento, falha e cancelamento

Invariantes:
    - Steps só são executados após suas dependências
    - Cada Step é executado no máximo uma vez por Run
    - StepResults são anexados na ordem do plano e nunca reordenados

Limites explícitos:
    - Não implementa actions concretas
    - Não publica artefatos
    - Não persiste Runs (responsabilidade do Run Ledger)
"""
