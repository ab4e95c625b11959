"""
Intcode machine: fetch/decode/execute state machine for the Intcode ISA.

One engine covers every historical variant: the two-opcode calculator, the
prompting machine with jumps and comparisons, and the relative-addressing
machine with growable memory and suspend-on-empty-input. Word width and the
input source are configuration (see ``MachineConfig``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .chips import Tape, Register, FIFO, AddressError
from .channels import QueuedInput, InputUnavailable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Instruction set
# ---------------------------------------------------------------------------

OP_ADD           = 1
OP_MUL           = 2
OP_INPUT         = 3
OP_OUTPUT        = 4
OP_JUMP_IF_TRUE  = 5
OP_JUMP_IF_FALSE = 6
OP_LESS_THAN     = 7
OP_EQUALS        = 8
OP_ADJUST_BASE   = 9
OP_HALT          = 99

# opcode -> number of parameters
OPCODE_PARAMS = {
    OP_ADD: 3,
    OP_MUL: 3,
    OP_INPUT: 1,
    OP_OUTPUT: 1,
    OP_JUMP_IF_TRUE: 2,
    OP_JUMP_IF_FALSE: 2,
    OP_LESS_THAN: 3,
    OP_EQUALS: 3,
    OP_ADJUST_BASE: 1,
    OP_HALT: 0,
}

OPCODE_NAMES = {
    OP_ADD: "ADD",
    OP_MUL: "MUL",
    OP_INPUT: "IN",
    OP_OUTPUT: "OUT",
    OP_JUMP_IF_TRUE: "JNZ",
    OP_JUMP_IF_FALSE: "JZ",
    OP_LESS_THAN: "LT",
    OP_EQUALS: "EQ",
    OP_ADJUST_BASE: "ARB",
    OP_HALT: "HALT",
}

MAX_PARAMS = 3

# Addressing modes
MODE_POSITION  = 0
MODE_IMMEDIATE = 1
MODE_RELATIVE  = 2

# Machine states
S_RUNNING = 0
S_WAITING = 1   # input starved; ip still on the input instruction
S_HALTED  = 2
S_FAULTED = 3

STATE_NAMES = {
    S_RUNNING: "Running",
    S_WAITING: "WaitingForInput",
    S_HALTED: "Halted",
    S_FAULTED: "Faulted",
}

# Fault kinds
FAULT_OUT_OF_BOUNDS        = "OutOfBounds"
FAULT_INVALID_ADDRESS_MODE = "InvalidAddressMode"
FAULT_INVALID_OPCODE       = "InvalidOpcode"
FAULT_INPUT_UNAVAILABLE    = "InputUnavailable"


class MachineFault(Exception):
    """Unrecoverable machine error, with the ip and opcode where it happened."""

    def __init__(self, kind: str, ip: int, opcode: int | None, detail: str = ""):
        self.kind = kind
        self.ip = ip
        self.opcode = opcode
        self.detail = detail
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f"{self.kind} at ip={self.ip} (opcode={self.opcode})"
        if self.detail:
            text += f": {self.detail}"
        return text


def decode(word: int, width: int = 0) -> tuple[int, list[int]]:
    """
    Split an instruction word into (opcode, modes).

    The low two decimal digits are the opcode; the remaining digits, least
    significant first, are the parameter modes. The mode list is padded with
    position mode up to the opcode's parameter count (or ``width``, if
    larger). Negative words keep their sign on the opcode, so they never
    decode to a valid instruction.
    """
    if word < 0:
        return -(-word % 100), [MODE_POSITION] * width
    opcode = word % 100
    rest = word // 100
    modes: list[int] = []
    while rest > 0:
        modes.append(rest % 10)
        rest //= 10
    width = max(width, OPCODE_PARAMS.get(opcode, 0))
    if len(modes) < width:
        modes.extend([MODE_POSITION] * (width - len(modes)))
    return opcode, modes


@dataclass
class MachineConfig:
    """
    Engine configuration.

    word_bits:    signed word width; results are wrapped two's-complement.
    strict_reads: reading past the end of memory faults. When False,
                  unwritten cells read as 0.
    input_source: ``QueuedInput`` (suspend on empty queue) or
                  ``InteractiveProvider`` (ask a callback).
    trace:        log every decoded instruction at DEBUG.
    """

    word_bits: int = 64
    strict_reads: bool = True
    input_source: object = field(default_factory=QueuedInput)
    trace: bool = False


# ---------------------------------------------------------------------------
# Machine
# ---------------------------------------------------------------------------

class IntcodeMachine:
    """Fetch/decode/execute state machine for Intcode programs."""

    def __init__(self, program, input_values=(), config: MachineConfig | None = None):
        self.config = config or MachineConfig()

        # --- Chips ---
        self.memory = Tape(program, self.config.word_bits, self.config.strict_reads)
        self.input_queue = FIFO(input_values)
        self.output_buffer = FIFO()
        self.input_source = self.config.input_source

        # --- Registers ---
        self.ip = Register(64)
        self.rb = Register(64)      # relative base
        self.state = S_RUNNING

        # --- Latches ---
        self.opcode: int | None = None
        self.result: int | None = None        # memory[0] at halt
        self.fault: MachineFault | None = None

        # --- Counters ---
        self.cycles = 0
        self.mem_reads = 0
        self.mem_writes = 0
        self.io_ops = 0

    # -------------------------------------------------------------------
    # Memory helpers
    # -------------------------------------------------------------------

    def peek(self, addr: int) -> int:
        self.mem_reads += 1
        return self.memory.read(addr)

    def poke(self, addr: int, value: int):
        self.mem_writes += 1
        self.memory.write(addr, value)

    def _param(self, n: int) -> int:
        return self.peek(self.ip.value + n)

    def resolve_address(self, param: int, mode: int) -> int:
        if mode == MODE_POSITION:
            return param
        if mode == MODE_RELATIVE:
            return param + self.rb.value
        if mode == MODE_IMMEDIATE:
            raise MachineFault(FAULT_INVALID_ADDRESS_MODE, self.ip.value, self.opcode,
                               "immediate mode used as a write target")
        raise MachineFault(FAULT_INVALID_ADDRESS_MODE, self.ip.value, self.opcode,
                           f"unknown addressing mode {mode}")

    def load(self, param: int, mode: int) -> int:
        if mode == MODE_IMMEDIATE:
            return param
        return self.peek(self.resolve_address(param, mode))

    def _arg(self, n: int, modes: list[int]) -> int:
        return self.load(self._param(n), modes[n - 1])

    def _target(self, n: int, modes: list[int]) -> int:
        return self.resolve_address(self._param(n), modes[n - 1])

    def _advance(self, n: int):
        self.ip.load(self.ip.value + n)

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------

    def tick(self) -> int:
        """Execute one instruction. Returns the resulting state.

        A waiting machine re-attempts its pending input instruction; a
        halted or faulted machine does nothing.
        """
        if self.state in (S_HALTED, S_FAULTED):
            return self.state

        self.state = S_RUNNING
        self.cycles += 1
        ip = self.ip.value
        self.opcode = None
        try:
            opcode, modes = decode(self.peek(ip))
            self.opcode = opcode
            if self.config.trace:
                logger.debug("ip=%d rb=%d op=%d modes=%s", ip, self.rb.value, opcode, modes)
            self._execute(opcode, modes)
        except AddressError as e:
            self._latch_fault(MachineFault(FAULT_OUT_OF_BOUNDS, ip, self.opcode, str(e)))
        except InputUnavailable as e:
            self._latch_fault(MachineFault(FAULT_INPUT_UNAVAILABLE, ip, self.opcode, str(e)))
        except MachineFault as e:
            self._latch_fault(e)
        return self.state

    def _latch_fault(self, fault: MachineFault):
        logger.warning("machine faulted: %s", fault)
        self.fault = fault
        self.state = S_FAULTED

    def _execute(self, opcode: int, modes: list[int]):
        if opcode == OP_ADD:
            a, b = self._arg(1, modes), self._arg(2, modes)
            self.poke(self._target(3, modes), a + b)
            self._advance(4)

        elif opcode == OP_MUL:
            a, b = self._arg(1, modes), self._arg(2, modes)
            self.poke(self._target(3, modes), a * b)
            self._advance(4)

        elif opcode == OP_INPUT:
            addr = self._target(1, modes)
            value = self.input_source.read(self.input_queue)
            if value is None:
                # Leave ip on this instruction so the read is retried on resume
                logger.debug("waiting for input at ip=%d", self.ip.value)
                self.state = S_WAITING
                return
            self.io_ops += 1
            self.poke(addr, value)
            self._advance(2)

        elif opcode == OP_OUTPUT:
            self.output_buffer.push(self._arg(1, modes))
            self.io_ops += 1
            self._advance(2)

        elif opcode == OP_JUMP_IF_TRUE:
            a, b = self._arg(1, modes), self._arg(2, modes)
            if a != 0:
                self.ip.load(b)
            else:
                self._advance(3)

        elif opcode == OP_JUMP_IF_FALSE:
            a, b = self._arg(1, modes), self._arg(2, modes)
            if a == 0:
                self.ip.load(b)
            else:
                self._advance(3)

        elif opcode == OP_LESS_THAN:
            a, b = self._arg(1, modes), self._arg(2, modes)
            self.poke(self._target(3, modes), 1 if a < b else 0)
            self._advance(4)

        elif opcode == OP_EQUALS:
            a, b = self._arg(1, modes), self._arg(2, modes)
            self.poke(self._target(3, modes), 1 if a == b else 0)
            self._advance(4)

        elif opcode == OP_ADJUST_BASE:
            self.rb.load(self.rb.value + self._arg(1, modes))
            self._advance(2)

        elif opcode == OP_HALT:
            self.result = self.peek(0)
            self.state = S_HALTED
            logger.debug("halted at ip=%d, memory[0]=%d", self.ip.value, self.result)

        else:
            raise MachineFault(FAULT_INVALID_OPCODE, self.ip.value, opcode,
                               f"word {self.memory.read(self.ip.value)}")

    # -------------------------------------------------------------------
    # Run until something other than Running
    # -------------------------------------------------------------------

    def run(self) -> int:
        """Run until waiting, halted or faulted. Returns the state."""
        while self.tick() == S_RUNNING:
            pass
        return self.state

    def reset_counters(self):
        self.cycles = 0
        self.mem_reads = 0
        self.mem_writes = 0
        self.io_ops = 0

    def stats(self) -> dict:
        return {
            "cycles": self.cycles,
            "mem_reads": self.mem_reads,
            "mem_writes": self.mem_writes,
            "io_ops": self.io_ops,
            "memory_size": len(self.memory),
            "memory_peak": self.memory.peak,
        }

    def stats_summary(self) -> str:
        s = self.stats()
        return (
            f"Cycles: {s['cycles']}\n"
            f"Memory: {s['mem_reads']}R/{s['mem_writes']}W "
            f"({s['memory_size']} words, peak {s['memory_peak']})\n"
            f"IO: {s['io_ops']} operations"
        )
