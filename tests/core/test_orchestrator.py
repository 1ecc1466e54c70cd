# tests/core/test_orchestrator.py
"""
Testes do Orchestrator (fluxo completo de um Run no core).

Este módulo valida a integração trigger → plano → execução → publicação →
ledger, com actions e storage fake.

Os testes asseguram que:
- um disparo manual produz exatamente um Run, gravado no ledger
- um schedule dispara uma única vez por slot
- Runs com falha nunca chamam o storage
- falhas de publicação são registradas sem alterar o status do build
- actions não registradas são rejeitadas na construção
- `run_id` duplicado é rejeitado
- cancelamento via `submit` + `cancel` termina o Run como CANCELLED
- `serialize_per_definition` impede Runs concorrentes da mesma definição
- o workspace é criado por Run e removido ao final (a menos de `keep_workspace`)

Decisões arquiteturais:
    - Relógio e `sleep` são injetados; nenhum teste depende do tempo real
    - Sincronização entre threads usa apenas threading.Event / Barrier com timeout
"""

import threading
import time
from datetime import timedelta

import pytest

try:
    from atlas_release.core.orchestrator import Orchestrator
    from atlas_release.core.config.errors import MissingActionError
    from atlas_release.core.config.settings import EngineSettings
    from atlas_release.core.errors import ARTIFACT_EMPTY, ARTIFACT_PUBLISH_FAILED
    from atlas_release.core.exceptions import RunStateError
    from atlas_release.core.ledger import RunLedger
    from atlas_release.core.pipeline.registry import ActionRegistry
    from atlas_release.core.pipeline.types import (
        ManualDispatchEvent,
        PublishStatus,
        RunRequest,
        RunStatus,
        StepStatus,
        TriggerSpec,
    )
except Exception as e:  # noqa: BLE001
    Orchestrator = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing orchestrator. Implement:\n"
            "- src/atlas_release/core/orchestrator.py (Orchestrator)\n"
            f"Import error: {_IMPORT_ERR}"
        )


WAIT_S = 10


def _manual_request(definition, now):
    return RunRequest(definition_id=definition.definition_id, trigger=TriggerSpec.manual(), requested_at=now)


def _settings(**publish):
    return EngineSettings.from_config({"publish": publish}) if publish else EngineSettings()


def test_manual_tick_runs_and_records(make_definition, registry, InMemoryStorage, no_sleep, fixed_now, frozen_clock):
    _require_imports()
    definition = make_definition([{"name": "checkout"}, {"name": "build", "after": ["checkout"]}])
    ledger = RunLedger()
    orch = Orchestrator(definition, registry, InMemoryStorage(), ledger=ledger, clock=frozen_clock, sleep=no_sleep)

    assert orch.tick(fixed_now) is None

    run = orch.tick(fixed_now, ManualDispatchEvent(actor="release-manager"))

    assert run.status == RunStatus.SUCCEEDED
    assert run.trigger == TriggerSpec.manual()
    assert [r.step_name for r in run.step_results] == ["checkout", "build"]
    assert run.publish_status == PublishStatus.NOT_ATTEMPTED
    assert run.run_id in ledger
    assert ledger.get(run.run_id).status == RunStatus.SUCCEEDED
    assert orch.active_runs() == []


def test_schedule_fires_once_per_slot(make_definition, registry, InMemoryStorage, fixed_now, frozen_clock):
    _require_imports()
    definition = make_definition([{"name": "build"}], triggers=[TriggerSpec.schedule("0 * * * *")])
    orch = Orchestrator(definition, registry, InMemoryStorage(), clock=frozen_clock)

    first = orch.tick(fixed_now)
    assert first is not None and first.status == RunStatus.SUCCEEDED
    assert orch.tick(fixed_now) is None
    assert orch.tick(fixed_now + timedelta(minutes=30)) is None
    assert orch.tick(fixed_now + timedelta(hours=1)) is not None
    assert len(orch.ledger) == 2


def test_failed_run_never_publishes(make_definition, registry, InMemoryStorage, fixed_now, frozen_clock):
    _require_imports()
    storage = InMemoryStorage()
    definition = make_definition(
        [{"name": "build", "action": "fail"}, {"name": "package"}],
        artifacts=[("bin", "*.exe")],
    )
    orch = Orchestrator(definition, registry, storage, clock=frozen_clock)

    run = orch.start(_manual_request(definition, fixed_now))

    assert run.status == RunStatus.FAILED
    assert [r.status for r in run.step_results] == [StepStatus.FAILED, StepStatus.SKIPPED]
    assert run.publish_status == PublishStatus.NOT_ATTEMPTED
    assert storage.store_calls == []


def test_successful_run_publishes(make_definition, ScriptedAction, InMemoryStorage, fixed_now, frozen_clock):
    _require_imports()
    storage = InMemoryStorage()
    actions = ActionRegistry.of([ScriptedAction("ok", outputs=["target/app.exe", "target/app.pdb"])])
    definition = make_definition([{"name": "build"}], artifacts=[("bin", "target/*.exe")])
    orch = Orchestrator(definition, actions, storage, clock=frozen_clock)

    run = orch.start(_manual_request(definition, fixed_now))

    assert run.publish_status == PublishStatus.PUBLISHED
    assert [a.name for a in run.artifacts] == ["bin"]
    assert run.artifacts[0].paths == ("target/app.exe",)
    assert any(e["event_type"] == "artifact_published" for e in run.events)
    assert orch.ledger.get(run.run_id).artifacts == run.artifacts


def test_publish_failure_keeps_build_status(make_definition, ScriptedAction, InMemoryStorage, no_sleep,
                                            fixed_now, frozen_clock):
    """
    Verifica que uma falha de storage não converte o build em FAILED.

    Invariantes:
        - run.status permanece SUCCEEDED
        - publish_status = FAILED, com payload de erro serializável
        - as tentativas respeitam `publish.max_attempts`
    """
    _require_imports()
    storage = InMemoryStorage(failures=100)
    actions = ActionRegistry.of([ScriptedAction("ok", outputs=["app.exe"])])
    definition = make_definition([{"name": "build"}], artifacts=[("bin", "*.exe")])
    orch = Orchestrator(definition, actions, storage, _settings(max_attempts=2), clock=frozen_clock, sleep=no_sleep)

    run = orch.start(_manual_request(definition, fixed_now))

    assert run.status == RunStatus.SUCCEEDED
    assert run.publish_status == PublishStatus.FAILED
    assert run.publish_error["type"] == ARTIFACT_PUBLISH_FAILED
    assert run.artifacts == []
    assert len(storage.store_calls) == 2
    assert orch.ledger.get(run.run_id).publish_status == PublishStatus.FAILED


def test_empty_artifact_is_publish_failure(make_definition, registry, InMemoryStorage, fixed_now, frozen_clock):
    _require_imports()
    storage = InMemoryStorage()
    definition = make_definition([{"name": "build"}], artifacts=[("bin", "*.exe")])
    orch = Orchestrator(definition, registry, storage, clock=frozen_clock)

    run = orch.start(_manual_request(definition, fixed_now))

    assert run.status == RunStatus.SUCCEEDED
    assert run.publish_status == PublishStatus.FAILED
    assert run.publish_error["type"] == ARTIFACT_EMPTY
    assert storage.store_calls == []


def test_missing_action_rejected_at_construction(make_definition, registry, InMemoryStorage):
    _require_imports()
    definition = make_definition([{"name": "build", "action": "msbuild"}])

    with pytest.raises(MissingActionError) as exc:
        Orchestrator(definition, registry, InMemoryStorage())

    assert "msbuild" in str(exc.value)


def test_duplicate_run_id_rejected(make_definition, registry, InMemoryStorage, fixed_now, frozen_clock):
    _require_imports()
    definition = make_definition([{"name": "build"}])
    orch = Orchestrator(definition, registry, InMemoryStorage(), clock=frozen_clock)

    orch.start(_manual_request(definition, fixed_now), run_id="nightly-1")

    with pytest.raises(RunStateError):
        orch.start(_manual_request(definition, fixed_now), run_id="nightly-1")


def test_submit_and_cancel(make_definition, ScriptedAction, InMemoryStorage, fixed_now, frozen_clock):
    """
    Verifica o cancelamento cooperativo de um Run em andamento.

    Invariantes:
        - o Step em andamento termina normalmente
        - os Steps seguintes são SKIPPED
        - o Run termina CANCELLED e é gravado no ledger
    """
    _require_imports()
    entered = threading.Event()
    release = threading.Event()

    def _block(parameters, context):
        entered.set()
        assert release.wait(WAIT_S)

    actions = ActionRegistry.of([ScriptedAction("slow", hook=_block), ScriptedAction("ok")])
    definition = make_definition([{"name": "build", "action": "slow"}, {"name": "package", "after": ["build"]}])

    with Orchestrator(definition, actions, InMemoryStorage(), clock=frozen_clock) as orch:
        future = orch.submit(_manual_request(definition, fixed_now), run_id="r-cancel")
        assert entered.wait(WAIT_S)
        assert orch.active_runs() == ["r-cancel"]
        assert orch.cancel("r-cancel") is True
        release.set()
        run = future.result(timeout=WAIT_S)

    assert run.status == RunStatus.CANCELLED
    assert [r.status for r in run.step_results] == [StepStatus.SUCCEEDED, StepStatus.SKIPPED]
    assert orch.cancel("r-cancel") is False
    assert orch.ledger.get("r-cancel").status == RunStatus.CANCELLED


def test_parallel_runs_of_same_definition(make_definition, ScriptedAction, InMemoryStorage, fixed_now, frozen_clock):
    _require_imports()
    barrier = threading.Barrier(2, timeout=WAIT_S)
    actions = ActionRegistry.of([ScriptedAction("ok", hook=lambda p, c: barrier.wait())])
    definition = make_definition([{"name": "build"}])
    settings = EngineSettings.from_config({"engine": {"max_workers": 2}})

    with Orchestrator(definition, actions, InMemoryStorage(), settings, clock=frozen_clock) as orch:
        futures = [orch.submit(_manual_request(definition, fixed_now)) for _ in range(2)]
        runs = [f.result(timeout=WAIT_S * 2) for f in futures]

    assert [r.status for r in runs] == [RunStatus.SUCCEEDED, RunStatus.SUCCEEDED]
    assert runs[0].run_id != runs[1].run_id


def test_serialize_per_definition(make_definition, ScriptedAction, InMemoryStorage, fixed_now, frozen_clock):
    _require_imports()
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def _track(parameters, context):
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.05)
        with lock:
            state["active"] -= 1

    actions = ActionRegistry.of([ScriptedAction("ok", hook=_track)])
    definition = make_definition([{"name": "build"}])
    settings = EngineSettings.from_config({"engine": {"max_workers": 3, "serialize_per_definition": True}})

    with Orchestrator(definition, actions, InMemoryStorage(), settings, clock=frozen_clock) as orch:
        futures = [orch.submit(_manual_request(definition, fixed_now)) for _ in range(3)]
        runs = [f.result(timeout=WAIT_S) for f in futures]

    assert all(r.status == RunStatus.SUCCEEDED for r in runs)
    assert state["peak"] == 1


def test_workspace_created_and_removed(make_definition, ScriptedAction, InMemoryStorage, fixed_now, frozen_clock):
    _require_imports()
    seen = []

    def _capture(parameters, context):
        seen.append(context.workspace)
        (context.workspace / "marker.txt").write_text("x", encoding="utf-8")

    actions = ActionRegistry.of([ScriptedAction("ok", hook=_capture)])
    definition = make_definition([{"name": "build"}])
    orch = Orchestrator(definition, actions, InMemoryStorage(), clock=frozen_clock)

    run = orch.start(_manual_request(definition, fixed_now))

    assert seen[0] is not None
    assert not seen[0].exists()
    assert run.workspace is None


def test_keep_workspace_under_root(tmp_path, make_definition, registry, InMemoryStorage, fixed_now, frozen_clock):
    _require_imports()
    settings = EngineSettings.from_config({
        "engine": {"workspace_root": str(tmp_path / "work"), "keep_workspace": True},
        "ledger": {"directory": str(tmp_path / "ledger")},
    })
    definition = make_definition([{"name": "build"}])
    orch = Orchestrator(definition, registry, InMemoryStorage(), settings, clock=frozen_clock)

    run = orch.start(_manual_request(definition, fixed_now), run_id="kept")

    assert run.workspace == tmp_path / "work" / "kept"
    assert run.workspace.is_dir()
    assert (tmp_path / "ledger" / "kept.json").exists()


def test_backfill_setting_reaches_evaluator(make_definition, registry, InMemoryStorage, fixed_now, frozen_clock):
    _require_imports()
    definition = make_definition([{"name": "build"}], triggers=[TriggerSpec.schedule("0 3 * * *")])
    late = fixed_now + timedelta(hours=2)

    default = Orchestrator(definition, registry, InMemoryStorage(), clock=frozen_clock)
    assert default.tick(late) is None
    assert len(default.ledger) == 0

    settings = EngineSettings.from_config({"engine": {"backfill_schedules": True}})
    backfilling = Orchestrator(definition, registry, InMemoryStorage(), settings, clock=frozen_clock)
    run = backfilling.tick(late)
    assert run is not None and run.status == RunStatus.SUCCEEDED


def test_run_with_date_parameters_reaches_disk_ledger(tmp_path, make_definition, registry, InMemoryStorage,
                                                       fixed_now, frozen_clock):
    _require_imports()
    from datetime import date

    settings = EngineSettings.from_config({"ledger": {"directory": str(tmp_path / "ledger")}})
    definition = make_definition([{"name": "tag", "parameters": {"released": date(2024, 1, 1)}}])
    orch = Orchestrator(definition, registry, InMemoryStorage(), settings, clock=frozen_clock)

    run = orch.start(_manual_request(definition, fixed_now), run_id="dated")

    assert run.status == RunStatus.SUCCEEDED
    assert "dated" in orch.ledger
    assert (tmp_path / "ledger" / "dated.json").exists()
