"""
program_runner: step-wise session driver for Intcode programs.

Wraps ``IntcodeVM`` with an input schedule, an output log and a phase
marker, so the CLI and the debugger share one way of driving a program.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .host import IntcodeVM, RunResult, Halted, WaitingForInput, Faulted
from .loader import load_program
from .machine import MachineConfig

logger = logging.getLogger(__name__)


class StepBudgetExceeded(RuntimeError):
    """The caller-side instruction budget ran out before the program stopped."""

    def __init__(self, steps: int, ip: int):
        super().__init__(f"no halt after {steps} instructions (ip={ip})")
        self.steps = steps
        self.ip = ip


class ProgramRunner:
    """Drives one VM, collecting its output as it is produced."""

    def __init__(self, config: MachineConfig | None = None):
        self.config = config or MachineConfig()
        self.vm: IntcodeVM | None = None
        self.source: str = ""
        self.outputs: list[int] = []
        self.output_lines: list[str] = []
        self.steps = 0
        self.last_result: RunResult | None = None
        self.phase: str = "idle"  # "idle" | "running" | "waiting" | "done"

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------

    def load_file(self, path: str | Path):
        """Load a program file and prepare a fresh VM."""
        self.load_program(load_program(path), source=str(path))

    def load_program(self, program, source: str = "<program>"):
        self.vm = IntcodeVM(program, (), self.config)
        self.source = source
        self.outputs = []
        self.output_lines = []
        self.steps = 0
        self.last_result = None
        self.phase = "idle"
        logger.debug("loaded %s (%d words)", source, len(self.vm.memory_snapshot()))

    @property
    def machine(self):
        return self.vm.machine

    def poke(self, addr: int, value: int):
        self.vm.poke(addr, value)

    def feed(self, values):
        """Queue input values; a waiting program becomes runnable again."""
        for v in values:
            self.vm.push_input(v)
        if self.phase == "waiting" and self.vm.pending_input:
            self.phase = "running"

    # -------------------------------------------------------------------
    # Tick interface
    # -------------------------------------------------------------------

    def tick(self) -> bool:
        """Execute one instruction.

        Returns False once the program has halted, faulted, or is waiting
        for input that has not been fed.
        """
        if self.phase in ("done", "waiting"):
            return False
        self.phase = "running"
        result = self.vm.step()
        self.steps += 1
        self._collect_output()
        if result is None:
            return True
        self.last_result = result
        self.phase = "waiting" if isinstance(result, WaitingForInput) else "done"
        return False

    def run(self, max_steps: int | None = None) -> RunResult:
        """Tick until the program stops. ``max_steps`` bounds runaway programs."""
        budget_start = self.steps
        while self.tick():
            if max_steps is not None and self.steps - budget_start >= max_steps:
                raise StepBudgetExceeded(self.steps - budget_start, self.vm.ip)
        return self.last_result

    def _collect_output(self):
        for value in self.vm.drain_output():
            self.outputs.append(value)
            self.output_lines.append(str(value))

    @property
    def halted(self) -> bool:
        return isinstance(self.last_result, Halted)

    @property
    def faulted(self) -> bool:
        return isinstance(self.last_result, Faulted)
