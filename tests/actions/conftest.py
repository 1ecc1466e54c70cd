# tests/actions/conftest.py
"""Fixtures das actions embutidas: contexto de Step sobre um workspace temporário."""

from pathlib import Path

import pytest


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def make_context(tmp_path: Path, workspace: Path):
    """Fábrica de ActionContext; `subdir` simula o parâmetro `working-directory`."""
    from atlas_release.core.pipeline.context import ActionContext

    def _make(subdir=None, environment=None):
        working = workspace / subdir if subdir else workspace
        working.mkdir(parents=True, exist_ok=True)
        scratch = tmp_path / "scratch"
        scratch.mkdir(exist_ok=True)
        return ActionContext(
            run_id="run-1",
            step_name="step",
            working_directory=working,
            environment=environment or {},
            scratch_dir=scratch,
            workspace=workspace,
        )

    return _make
