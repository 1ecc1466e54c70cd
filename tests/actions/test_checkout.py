# tests/actions/test_checkout.py
"""
Testes da action `checkout`.

Os testes asseguram que:
- o diretório de origem é copiado para o diretório de trabalho
- diretórios `.git` não são copiados
- `clean` (default) remove arquivos pré-existentes; `clean: false` os mantém
- origem inexistente → FAILED (sem exceção)
- `source` ausente é erro de parâmetro (ValueError)
"""

from pathlib import Path

import pytest

try:
    from atlas_release.actions.checkout import CheckoutAction
    from atlas_release.core.pipeline.types import StepStatus
except Exception as e:  # noqa: BLE001
    CheckoutAction = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing checkout action. Import error: {_IMPORT_ERR}")


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    src = tmp_path / "repo"
    (src / "src").mkdir(parents=True)
    (src / ".git").mkdir()
    (src / "Cargo.toml").write_text("[package]\nname = 'app'\n", encoding="utf-8")
    (src / "src" / "main.rs").write_text("fn main() {}\n", encoding="utf-8")
    (src / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    return src


def test_copies_source_without_git(make_context, workspace, source_tree):
    _require_imports()
    ctx = make_context()

    outcome = CheckoutAction().run({"source": str(source_tree)}, ctx)

    assert outcome.status == StepStatus.SUCCEEDED
    assert outcome.output_paths == ()
    assert (workspace / "src" / "main.rs").exists()
    assert (workspace / "Cargo.toml").exists()
    assert not (workspace / ".git").exists()


def test_clean_removes_stale_files(make_context, workspace, source_tree):
    _require_imports()
    (workspace / "stale").mkdir()
    (workspace / "stale" / "old.obj").write_text("x", encoding="utf-8")

    CheckoutAction().run({"source": str(source_tree)}, make_context())

    assert not (workspace / "stale").exists()


def test_no_clean_keeps_existing_files(make_context, workspace, source_tree):
    _require_imports()
    (workspace / "cache.bin").write_text("keep", encoding="utf-8")

    CheckoutAction().run({"source": str(source_tree), "clean": False}, make_context())

    assert (workspace / "cache.bin").read_text(encoding="utf-8") == "keep"
    assert (workspace / "Cargo.toml").exists()


def test_missing_source_directory_fails(make_context, tmp_path):
    _require_imports()

    outcome = CheckoutAction().run({"source": str(tmp_path / "nope")}, make_context())

    assert outcome.status == StepStatus.FAILED
    assert outcome.exit_code == 1


def test_source_parameter_required(make_context):
    _require_imports()
    with pytest.raises(ValueError):
        CheckoutAction().run({}, make_context())
