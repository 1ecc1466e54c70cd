# src/atlas_release/core/__init__.py
"""
Core do Atlas Release.

Reúne as responsabilidades essenciais de um Run de build/release, da
avaliação do trigger ao registro no ledger.

O core é projetado para ser:
    - determinístico (ordem de Steps estável, timestamps UTC)
    - testável de forma isolada (actions e storage são colaboradores injetados)
    - orientado a contratos explícitos

Princípios fundamentais:
    - Nenhuma decisão silenciosa: todo comportamento é explícito e testado
    - Falhas de Step nunca propagam para fora do Engine
    - O status do build e o resultado da publicação são independentes
"""
