# tests/core/pipeline/test_run_state.py
"""
Testes da máquina de estados do Run e dos tipos de resultado.

Os testes asseguram que:
- apenas PENDING → RUNNING → {SUCCEEDED, FAILED, CANCELLED} é permitido
- estados terminais são finais
- StepResult remove output paths duplicados preservando a ordem
- Run.output_paths agrega saídas na ordem dos Steps, sem duplicatas
- raise_for_status aponta o Step que interrompeu o Run
"""

import pytest

try:
    from atlas_release.core.exceptions import RunStateError, StepExecutionError
    from atlas_release.core.pipeline.types import RunStatus, StepResult, StepStatus
except Exception as e:  # noqa: BLE001
    RunStatus = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing types module (core/pipeline/types.py). Import error: {_IMPORT_ERR}")


@pytest.mark.parametrize("terminal", ["SUCCEEDED", "FAILED", "CANCELLED"])
def test_valid_transitions(make_definition, make_run, terminal):
    _require_imports()
    run = make_run(make_definition([{"name": "a"}]))

    run.transition(RunStatus.RUNNING)
    run.transition(RunStatus[terminal])

    assert run.is_terminal
    assert run.status.is_terminal


@pytest.mark.parametrize(
    "path",
    [
        ["SUCCEEDED"],
        ["PENDING"],
        ["RUNNING", "PENDING"],
        ["RUNNING", "RUNNING"],
        ["RUNNING", "FAILED", "SUCCEEDED"],
        ["RUNNING", "CANCELLED", "RUNNING"],
    ],
)
def test_invalid_transitions_raise(make_definition, make_run, path):
    _require_imports()
    run = make_run(make_definition([{"name": "a"}]))

    with pytest.raises(RunStateError):
        for status in path:
            run.transition(RunStatus[status])


def test_step_result_dedups_output_paths():
    _require_imports()
    r = StepResult(step_name="build", status=StepStatus.SUCCEEDED, captured_output_paths=("b", "a", "b"))
    assert r.captured_output_paths == ("b", "a")


def test_run_output_paths_in_step_order(make_definition, make_run):
    _require_imports()
    run = make_run(make_definition([{"name": "a"}, {"name": "b"}]))
    run.step_results.append(StepResult("a", StepStatus.SUCCEEDED, captured_output_paths=("x.exe", "x.pdb")))
    run.step_results.append(StepResult("b", StepStatus.SUCCEEDED, captured_output_paths=("y.zip", "x.exe")))

    assert run.output_paths() == ["x.exe", "x.pdb", "y.zip"]


def test_step_result_round_trip():
    _require_imports()
    r = StepResult(
        step_name="build",
        status=StepStatus.FAILED,
        exit_code=2,
        duration_ms=15,
        captured_output_paths=("a",),
        summary="failed",
        error={"type": "STEP_ACTION_FAILED", "message": "x", "details": {}, "hint": None},
    )
    assert StepResult.from_dict(r.to_dict()) == r


def test_raise_for_status_points_at_blocking_step(make_definition, make_run):
    _require_imports()
    definition = make_definition([
        {"name": "lint", "continue_on_error": True},
        {"name": "build"},
        {"name": "package"},
    ])
    run = make_run(definition)
    run.transition(RunStatus.RUNNING)
    run.step_results.extend([
        StepResult("lint", StepStatus.FAILED, exit_code=1),
        StepResult("build", StepStatus.FAILED, exit_code=2),
        StepResult("package", StepStatus.SKIPPED),
    ])
    run.transition(RunStatus.FAILED)

    with pytest.raises(StepExecutionError) as exc:
        run.raise_for_status()

    assert exc.value.details["step"] == "build"
    assert exc.value.details["exit_code"] == 2


def test_raise_for_status_is_noop_unless_failed(make_definition, make_run):
    _require_imports()
    run = make_run(make_definition([{"name": "a"}]))
    run.transition(RunStatus.RUNNING)
    run.transition(RunStatus.CANCELLED)

    assert run.raise_for_status() is None
