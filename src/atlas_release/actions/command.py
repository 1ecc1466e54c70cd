# src/atlas_release/actions/command.py
"""
Action `run-command`: executa um comando no diretório de trabalho do Step.

Parâmetros:
    - command (str | list[str], obrigatório): comando a executar. Com
      `shell: false`, strings são divididas com `shlex.split`
    - shell (bool, default False): executa via shell do sistema
    - timeout_s (número, opcional): tempo máximo; estouro → falha
    - outputs (str | list[str], opcional): globs dos arquivos produzidos,
      resolvidos após o comando e declarados como output paths
    - env (mapping, opcional): variáveis adicionais (mescladas pelo Engine)

O processo herda o ambiente do host acrescido do ambiente mesclado do Step.
stdout/stderr são capturados; o final de cada um vai para o Event Log.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from typing import Any, List, Mapping, Union

from atlas_release.core.pipeline.context import ActionContext
from atlas_release.core.pipeline.types import ActionOutcome

from .outputs import as_patterns, resolve_outputs


LOGGER = logging.getLogger(__name__)

TAIL_CHARS = 4000


def _tail(text: str) -> str:
    return text if len(text) <= TAIL_CHARS else "..." + text[-TAIL_CHARS:]


class RunCommandAction:
    """Executa comandos de build via `subprocess`."""

    name = "run-command"

    def _command(self, parameters: Mapping[str, Any]) -> Union[str, List[str]]:
        command = parameters.get("command")
        shell = bool(parameters.get("shell", False))
        if isinstance(command, str) and command.strip():
            return command if shell else shlex.split(command)
        if isinstance(command, (list, tuple)) and command and all(isinstance(c, str) for c in command):
            return " ".join(shlex.quote(c) for c in command) if shell else list(command)
        raise ValueError("parâmetro 'command' deve ser str não vazia ou lista de str")

    def run(self, parameters: Mapping[str, Any], context: ActionContext) -> ActionOutcome:
        command = self._command(parameters)
        shell = bool(parameters.get("shell", False))
        timeout = parameters.get("timeout_s")
        patterns = as_patterns(parameters.get("outputs"), parameter="outputs")
        display = command if isinstance(command, str) else " ".join(command)

        env = {**os.environ, **context.environment}
        context.log(level="INFO", message=f"$ {display}")
        LOGGER.debug("step %s running: %s", context.step_name, display)

        try:
            completed = subprocess.run(
                command,
                cwd=context.working_directory,
                env=env,
                shell=shell,
                capture_output=True,
                text=True,
                timeout=float(timeout) if timeout is not None else None,
                check=False,
            )
        except subprocess.TimeoutExpired:
            context.log(level="ERROR", message=f"timeout after {timeout}s")
            return ActionOutcome.failure(exit_code=None, summary=f"command timed out after {timeout}s: {display}")
        except FileNotFoundError as exc:
            context.log(level="ERROR", message=str(exc))
            return ActionOutcome.failure(exit_code=127, summary=f"executable not found: {display}")

        if completed.stdout:
            context.log(level="INFO", message=_tail(completed.stdout), stream="stdout")
        if completed.stderr:
            context.log(level="WARNING", message=_tail(completed.stderr), stream="stderr")

        if completed.returncode != 0:
            return ActionOutcome.failure(
                exit_code=completed.returncode,
                summary=f"command exited with {completed.returncode}: {display}",
            )

        outputs = resolve_outputs(context.working_directory, patterns, relative_to=context.workspace)
        return ActionOutcome.success(output_paths=outputs, summary=f"command succeeded: {display}")
