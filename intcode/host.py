"""
IntcodeVM: high-level interface to the Intcode machine.

Wraps ``IntcodeMachine`` with the caller-facing contract: build a VM from a
program and initial input, optionally poke memory, then call ``run()`` until
it reports ``Halted`` or ``Faulted``, pushing input whenever it reports
``WaitingForInput``. Also provides disassembly for the debugger and CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

from .chips import AddressError
from .machine import (
    IntcodeMachine, MachineConfig, MachineFault, decode,
    S_RUNNING, S_WAITING, S_HALTED, S_FAULTED, STATE_NAMES,
    FAULT_OUT_OF_BOUNDS, OPCODE_NAMES, OPCODE_PARAMS,
    MODE_POSITION, MODE_IMMEDIATE, MODE_RELATIVE,
    OP_ADD, OP_MUL, OP_INPUT, OP_LESS_THAN, OP_EQUALS,
)


# ---------------------------------------------------------------------------
# Run results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Halted:
    value: int          # memory[0] at the halt instruction


@dataclass(frozen=True)
class WaitingForInput:
    ip: int             # address of the pending input instruction


@dataclass(frozen=True)
class Faulted:
    kind: str
    ip: int
    opcode: int | None
    detail: str = ""


RunResult = Union[Halted, WaitingForInput, Faulted]


class VMError(RuntimeError):
    """Raised by ``expect_halt`` when a run does not end in a clean halt."""

    def __init__(self, result: RunResult):
        super().__init__(f"program did not halt: {result}")
        self.result = result


def build(program, initial_input=(), config: MachineConfig | None = None) -> IntcodeVM:
    """Create a VM from a parsed program and an initial input queue."""
    return IntcodeVM(program, initial_input, config)


class IntcodeVM:
    """Caller-facing Intcode virtual machine.

    Args:
        program: Initial memory words.
        initial_input: Values queued for the first input instructions.
        config: ``MachineConfig``; defaults to a 64-bit machine with strict
            reads and queued input.
    """

    def __init__(self, program, initial_input=(), config: MachineConfig | None = None):
        self._program = [int(w) for w in program]
        self._initial_input = [int(v) for v in initial_input]
        self.config = config or MachineConfig()
        self.machine = IntcodeMachine(self._program, self._initial_input, self.config)

    # -------------------------------------------------------------------
    # Memory
    # -------------------------------------------------------------------

    def poke(self, addr: int, value: int):
        """Patch memory before (or between) runs. Grows memory as needed.

        Raises ``MachineFault`` for a negative address.
        """
        try:
            self.machine.poke(addr, value)
        except AddressError as e:
            raise MachineFault(FAULT_OUT_OF_BOUNDS, self.ip, None, str(e)) from e

    def peek(self, addr: int) -> int:
        try:
            return self.machine.peek(addr)
        except AddressError as e:
            raise MachineFault(FAULT_OUT_OF_BOUNDS, self.ip, None, str(e)) from e

    def memory_snapshot(self) -> list[int]:
        return self.machine.memory.snapshot()

    # -------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------

    def run(self) -> RunResult:
        """Run until the machine halts, faults or starves for input."""
        self.machine.run()
        return self._report()

    def step(self) -> RunResult | None:
        """Execute one instruction. Returns None while still running."""
        if self.machine.tick() == S_RUNNING:
            return None
        return self._report()

    def run_until_output(self) -> RunResult | None:
        """Run until a new output value appears or the machine stops.

        Returns None when stopped because of output.
        """
        pending = len(self.machine.output_buffer)
        while self.machine.tick() == S_RUNNING:
            if len(self.machine.output_buffer) > pending:
                return None
        return self._report()

    def expect_halt(self) -> int:
        """Run and return the halt value; raise ``VMError`` otherwise."""
        result = self.run()
        if not isinstance(result, Halted):
            raise VMError(result)
        return result.value

    def reset(self):
        """Restore the initial program, input and registers."""
        self.machine = IntcodeMachine(self._program, self._initial_input, self.config)

    def result(self) -> RunResult | None:
        """The current run result, or None while running."""
        if self.machine.state == S_RUNNING:
            return None
        return self._report()

    def _report(self) -> RunResult:
        m = self.machine
        if m.state == S_HALTED:
            return Halted(m.result)
        if m.state == S_WAITING:
            return WaitingForInput(m.ip.value)
        f = m.fault
        return Faulted(f.kind, f.ip, f.opcode, f.detail)

    # -------------------------------------------------------------------
    # I/O channel
    # -------------------------------------------------------------------

    def push_input(self, value: int):
        self.machine.input_queue.push(value)

    def drain_output(self) -> list[int]:
        return self.machine.output_buffer.drain()

    @property
    def pending_input(self) -> list[int]:
        return list(self.machine.input_queue.buffer)

    @property
    def pending_output(self) -> list[int]:
        return list(self.machine.output_buffer.buffer)

    # -------------------------------------------------------------------
    # Registers and state
    # -------------------------------------------------------------------

    @property
    def ip(self) -> int:
        return self.machine.ip.value

    @property
    def relative_base(self) -> int:
        return self.machine.rb.value

    @property
    def state(self) -> str:
        return STATE_NAMES[self.machine.state]

    @property
    def halted(self) -> bool:
        return self.machine.state == S_HALTED

    @property
    def waiting(self) -> bool:
        return self.machine.state == S_WAITING

    @property
    def faulted(self) -> bool:
        return self.machine.state == S_FAULTED

    def stats(self) -> dict:
        return self.machine.stats()

    def fork(self) -> IntcodeVM:
        """Independent VM with the same program, input and configuration."""
        return IntcodeVM(self._program, self._initial_input, replace(self.config))

    # -------------------------------------------------------------------
    # Disassembly
    # -------------------------------------------------------------------

    def disassemble(self, addr: int) -> tuple[str, int]:
        """Render the instruction at ``addr``. Returns (text, width in words)."""
        memory = self.machine.memory
        if not 0 <= addr < len(memory):
            return "??", 1
        word = memory.read(addr)
        opcode, modes = decode(word)
        name = OPCODE_NAMES.get(opcode)
        if name is None:
            return f"DATA {word}", 1

        count = OPCODE_PARAMS[opcode]
        operands = []
        for i in range(count):
            a = addr + 1 + i
            raw = memory.read(a) if a < len(memory) else None
            operands.append(_format_operand(raw, modes[i]))

        if opcode in _WRITE_OPS:
            target = operands.pop()
            text = f"{name} {' '.join(operands)} -> {target}" if operands else f"{name} -> {target}"
        elif operands:
            text = f"{name} {' '.join(operands)}"
        else:
            text = name
        return text, 1 + count

    def listing(self, start: int = 0, count: int = 20) -> list[tuple[int, str]]:
        """Disassemble ``count`` instructions walking forward from ``start``."""
        lines = []
        addr = start
        while len(lines) < count and addr < len(self.machine.memory):
            text, width = self.disassemble(addr)
            lines.append((addr, text))
            addr += width
        return lines


_WRITE_OPS = frozenset({OP_ADD, OP_MUL, OP_INPUT, OP_LESS_THAN, OP_EQUALS})


def _format_operand(raw: int | None, mode: int) -> str:
    if raw is None:
        return "?"
    if mode == MODE_IMMEDIATE:
        return f"#{raw}"
    if mode == MODE_POSITION:
        return f"[{raw}]"
    if mode == MODE_RELATIVE:
        return f"[rb{raw:+d}]"
    return f"?{mode}:{raw}"
