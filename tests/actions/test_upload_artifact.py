# tests/actions/test_upload_artifact.py
"""
Testes da action `upload-artifact` e do registry embutido.

Os testes asseguram que:
- arquivos encontrados pelos globs viram output paths do Step
- `if-no-files-found` controla o comportamento sem arquivos
- `default_registry` registra as três actions embutidas
"""

import pytest

try:
    from atlas_release.actions import default_registry
    from atlas_release.actions.upload import UploadArtifactAction
    from atlas_release.core.pipeline.types import StepStatus
except Exception as e:  # noqa: BLE001
    UploadArtifactAction = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing upload-artifact action. Import error: {_IMPORT_ERR}")


def test_declares_matching_files(make_context, workspace):
    _require_imports()
    (workspace / "dist").mkdir()
    (workspace / "dist" / "setup.msi").write_text("msi", encoding="utf-8")
    (workspace / "dist" / "app.zip").write_text("zip", encoding="utf-8")
    (workspace / "dist" / "notes").mkdir()

    outcome = UploadArtifactAction().run({"path": "dist/*\ndist/*.msi"}, make_context())

    assert outcome.status == StepStatus.SUCCEEDED
    assert outcome.output_paths == ("dist/app.zip", "dist/setup.msi")


def test_no_files_is_error_by_default(make_context):
    _require_imports()

    outcome = UploadArtifactAction().run({"path": ["dist/*.msi"]}, make_context())

    assert outcome.status == StepStatus.FAILED


def test_no_files_warn_and_ignore(make_context):
    _require_imports()
    ctx = make_context()

    warned = UploadArtifactAction().run({"path": "dist/*.msi", "if-no-files-found": "warn"}, ctx)
    ignored = UploadArtifactAction().run({"path": "dist/*.msi", "if-no-files-found": "ignore"}, ctx)

    assert warned.status == StepStatus.SUCCEEDED and warned.output_paths == ()
    assert ignored.status == StepStatus.SUCCEEDED
    assert [e["level"] for e in ctx.events] == ["WARNING"]


@pytest.mark.parametrize("parameters", [{}, {"path": "x", "if-no-files-found": "explode"}])
def test_invalid_parameters(make_context, parameters):
    _require_imports()
    with pytest.raises(ValueError):
        UploadArtifactAction().run(parameters, make_context())


def test_default_registry():
    _require_imports()
    registry = default_registry()

    assert sorted(registry.names()) == ["checkout", "run-command", "upload-artifact"]
