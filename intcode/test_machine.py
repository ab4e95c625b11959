"""
Verification suite for the Intcode machine.

Covers instruction decoding, every opcode, addressing modes, memory growth,
suspend-on-empty-input, the interactive input provider and fault reporting.
"""

from __future__ import annotations

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from intcode.channels import InteractiveProvider, InputUnavailable
from intcode.machine import (
    IntcodeMachine, MachineConfig, decode,
    S_RUNNING, S_WAITING, S_HALTED, S_FAULTED,
    FAULT_OUT_OF_BOUNDS, FAULT_INVALID_ADDRESS_MODE, FAULT_INVALID_OPCODE,
    FAULT_INPUT_UNAVAILABLE,
)

QUINE = [109, 1, 204, -1, 1001, 100, 1, 100, 1008, 100, 16, 101, 1006, 101, 0, 99]

EQUALS_8_POSITION = [3, 9, 8, 9, 10, 9, 4, 9, 99, -1, 8]
LESS_8_POSITION = [3, 9, 7, 9, 10, 9, 4, 9, 99, -1, 8]
EQUALS_8_IMMEDIATE = [3, 3, 1108, -1, 8, 3, 4, 3, 99]
LESS_8_IMMEDIATE = [3, 3, 1107, -1, 8, 3, 4, 3, 99]

JUMP_POSITION = [3, 12, 6, 12, 15, 1, 13, 14, 13, 4, 13, 99, -1, 0, 1, 9]
JUMP_IMMEDIATE = [3, 3, 1105, -1, 9, 1101, 0, 0, 12, 4, 12, 99, 1]

COMPARE_8 = [
    3, 21, 1008, 21, 8, 20, 1005, 20, 22, 107, 8, 21, 20, 1006, 20, 31,
    1106, 0, 36, 98, 0, 0, 1002, 21, 125, 20, 4, 20, 1105, 1, 46, 104,
    999, 1105, 1, 46, 1101, 1000, 1, 20, 4, 20, 1105, 1, 46, 98, 99,
]

TWO_READS = [3, 9, 3, 10, 1, 9, 10, 0, 99]


def _run(program, inputs=(), **config) -> IntcodeMachine:
    m = IntcodeMachine(program, inputs, MachineConfig(**config))
    m.run()
    return m


def _outputs(program, inputs=(), **config) -> list[int]:
    m = _run(program, inputs, **config)
    assert m.state == S_HALTED, f"state={m.state} fault={m.fault}"
    return m.output_buffer.drain()


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

def test_decode_modes():
    assert decode(1002) == (2, [0, 1, 0])
    assert decode(1) == (1, [0, 0, 0])
    assert decode(21101) == (1, [1, 1, 2])
    assert decode(104) == (4, [1])
    assert decode(204) == (4, [2])
    assert decode(3) == (3, [0])
    assert decode(99) == (99, [])


def test_decode_opcode_is_low_two_digits():
    for word in (1, 2, 99, 1002, 11108, 20209, 42):
        opcode, modes = decode(word)
        assert opcode == word % 100
    # Unknown opcodes decode without padding
    assert decode(42) == (42, [])
    assert decode(142, width=3) == (42, [1, 0, 0])


def test_decode_negative_word_is_never_valid():
    opcode, _ = decode(-1)
    assert opcode == -1
    opcode, _ = decode(-99)
    assert opcode == -99


# ---------------------------------------------------------------------------
# Arithmetic and halting
# ---------------------------------------------------------------------------

def test_add_halts_with_memory_zero():
    m = _run([1, 0, 0, 0, 99])
    assert m.state == S_HALTED
    assert m.result == 2
    assert m.memory.snapshot() == [2, 0, 0, 0, 99]


def test_mul():
    m = _run([2, 3, 0, 3, 99])
    assert m.state == S_HALTED
    assert m.memory.snapshot() == [2, 3, 0, 6, 99]

    m = _run([2, 4, 4, 5, 99, 0])
    assert m.memory.read(5) == 9801


def test_self_modifying_program():
    m = _run([1, 1, 1, 4, 99, 5, 6, 0, 99])
    assert m.state == S_HALTED
    assert m.memory.snapshot() == [30, 1, 1, 4, 2, 5, 6, 0, 99]

    m = _run([1, 9, 10, 3, 2, 3, 11, 0, 99, 30, 40, 50])
    assert m.result == 3500


def test_immediate_and_negative_parameters():
    m = _run([1002, 4, 3, 4, 33])
    assert m.state == S_HALTED
    assert m.memory.read(4) == 99

    m = _run([1101, 100, -1, 4, 0])
    assert m.state == S_HALTED
    assert m.memory.read(4) == 99


def test_large_numbers():
    assert _outputs([1102, 34915192, 34915192, 7, 4, 7, 99, 0]) == [1219070632396864]
    assert _outputs([104, 1125899906842624, 99]) == [1125899906842624]


def test_narrow_word_width_wraps_results():
    m = _run([1101, 30000, 30000, 0, 99], word_bits=16)
    assert m.state == S_HALTED
    assert m.result == 60000 - 65536


# ---------------------------------------------------------------------------
# Comparisons and jumps
# ---------------------------------------------------------------------------

def test_equals_and_less_than():
    assert _outputs(EQUALS_8_POSITION, [8]) == [1]
    assert _outputs(EQUALS_8_POSITION, [7]) == [0]
    assert _outputs(LESS_8_POSITION, [7]) == [1]
    assert _outputs(LESS_8_POSITION, [8]) == [0]
    assert _outputs(EQUALS_8_IMMEDIATE, [8]) == [1]
    assert _outputs(EQUALS_8_IMMEDIATE, [9]) == [0]
    assert _outputs(LESS_8_IMMEDIATE, [-3]) == [1]
    assert _outputs(LESS_8_IMMEDIATE, [8]) == [0]


def test_jumps():
    for program in (JUMP_POSITION, JUMP_IMMEDIATE):
        assert _outputs(program, [0]) == [0]
        assert _outputs(program, [5]) == [1]


def test_compare_to_eight():
    assert _outputs(COMPARE_8, [7]) == [999]
    assert _outputs(COMPARE_8, [8]) == [1000]
    assert _outputs(COMPARE_8, [9]) == [1001]


# ---------------------------------------------------------------------------
# Relative addressing and growth
# ---------------------------------------------------------------------------

def test_quine_outputs_itself():
    assert _outputs(QUINE, strict_reads=False) == QUINE


def test_quine_faults_under_strict_reads():
    m = _run(QUINE)
    assert m.state == S_FAULTED
    assert m.fault.kind == FAULT_OUT_OF_BOUNDS
    assert m.fault.ip == 4
    assert m.fault.opcode == 1


def test_relative_base_adjust_and_write():
    # rb = 10; in -> [rb+5]; out [15]
    m = _run([109, 10, 203, 5, 4, 15, 99], [77])
    assert m.state == S_HALTED
    assert m.rb.value == 10
    assert m.output_buffer.drain() == [77]
    assert len(m.memory) == 16


def test_write_far_past_end_grows_memory():
    m = _run([1101, 2, 3, 5000, 4, 5000, 99])
    assert m.state == S_HALTED
    assert len(m.memory) == 5001
    assert m.output_buffer.drain() == [5]


def test_unallocatable_write_faults_out_of_bounds():
    m = _run([1101, 1, 1, 2**62, 99])
    assert m.state == S_FAULTED
    assert m.fault.kind == FAULT_OUT_OF_BOUNDS
    assert (m.fault.ip, m.fault.opcode) == (0, 1)
    assert len(m.memory) == 5

    m = _run([109, 2**62, 21101, 1, 1, 0, 99])
    assert m.state == S_FAULTED
    assert m.fault.kind == FAULT_OUT_OF_BOUNDS
    assert (m.fault.ip, m.fault.opcode) == (2, 1)


# ---------------------------------------------------------------------------
# Suspend / resume
# ---------------------------------------------------------------------------

def test_empty_queue_suspends_without_advancing():
    m = IntcodeMachine(TWO_READS)
    assert m.run() == S_WAITING
    assert m.ip.value == 0

    m.input_queue.push(5)
    assert m.run() == S_WAITING
    assert m.ip.value == 2
    assert m.memory.read(9) == 5

    m.input_queue.push(7)
    assert m.run() == S_HALTED
    assert m.result == 12


def test_queued_values_are_read_in_order():
    m = IntcodeMachine(TWO_READS)
    m.run()
    m.input_queue.push(1)
    m.input_queue.push(2)
    assert m.run() == S_HALTED
    assert m.memory.read(9) == 1
    assert m.memory.read(10) == 2


def test_relative_base_survives_suspension():
    program = [109, 7, 203, 0, 204, 0, 99]
    m = IntcodeMachine(program)
    assert m.run() == S_WAITING
    assert m.rb.value == 7
    m.input_queue.push(-9)
    assert m.run() == S_HALTED
    assert m.output_buffer.drain() == [-9]


# ---------------------------------------------------------------------------
# Interactive provider
# ---------------------------------------------------------------------------

def test_interactive_provider_is_asked_when_queue_empty():
    asked = []

    def provider():
        asked.append(True)
        return 8

    source = InteractiveProvider(provider)
    m = _run(EQUALS_8_POSITION, input_source=source)
    assert m.state == S_HALTED
    assert m.output_buffer.drain() == [1]
    assert source.requests == 1
    assert len(asked) == 1


def test_interactive_provider_prefers_queue():
    source = InteractiveProvider(lambda: 8)
    m = _run(EQUALS_8_POSITION, [7], input_source=source)
    assert m.output_buffer.drain() == [0]
    assert source.requests == 0


def test_interactive_provider_failure_faults():
    def provider():
        raise EOFError("stdin closed")

    m = _run(EQUALS_8_POSITION, input_source=InteractiveProvider(provider))
    assert m.state == S_FAULTED
    assert m.fault.kind == FAULT_INPUT_UNAVAILABLE
    assert m.fault.ip == 0
    assert m.fault.opcode == 3


def test_interactive_provider_rejects_non_integer():
    source = InteractiveProvider(lambda: "8")
    try:
        source.read(IntcodeMachine([99]).input_queue)
    except InputUnavailable:
        return
    raise AssertionError("non-integer accepted")


# ---------------------------------------------------------------------------
# Faults
# ---------------------------------------------------------------------------

def test_invalid_opcode_faults():
    m = _run([1101, 1, 1, 5, 42, 0])
    assert m.state == S_FAULTED
    assert m.fault.kind == FAULT_INVALID_OPCODE
    assert m.fault.ip == 4
    assert m.fault.opcode == 42


def test_negative_word_faults_as_invalid_opcode():
    m = _run([-1])
    assert m.fault.kind == FAULT_INVALID_OPCODE
    assert m.fault.opcode == -1


def test_immediate_write_target_faults():
    m = _run([11101, 1, 1, 0, 99])
    assert m.state == S_FAULTED
    assert m.fault.kind == FAULT_INVALID_ADDRESS_MODE
    assert m.fault.ip == 0
    assert m.fault.opcode == 1


def test_unknown_mode_digit_faults():
    m = _run([301, 0, 0, 0, 99])
    assert m.fault.kind == FAULT_INVALID_ADDRESS_MODE


def test_negative_address_faults():
    m = _run([1, -1, 0, 0, 99])
    assert m.fault.kind == FAULT_OUT_OF_BOUNDS
    assert m.fault.ip == 0


def test_jump_past_end_faults():
    m = _run([1105, 1, 7, 99])
    assert m.state == S_FAULTED
    assert m.fault.kind == FAULT_OUT_OF_BOUNDS
    assert m.fault.ip == 7
    assert m.fault.opcode is None


def test_terminal_states_do_not_execute():
    m = _run([42])
    cycles = m.cycles
    assert m.tick() == S_FAULTED
    assert m.run() == S_FAULTED
    assert m.cycles == cycles

    m = _run([99])
    assert m.tick() == S_HALTED
    assert m.cycles == 1


def test_counters():
    m = _run([1, 0, 0, 0, 4, 0, 99])
    s = m.stats()
    assert s["cycles"] == 3
    assert s["io_ops"] == 1
    assert s["mem_writes"] == 1
    assert "Cycles: 3" in m.stats_summary()
    m.reset_counters()
    assert m.cycles == 0


def test_single_tick_reports_running():
    m = IntcodeMachine([1, 0, 0, 0, 99])
    assert m.tick() == S_RUNNING
    assert m.ip.value == 4


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    print("=" * 60)
    print("Intcode Machine Verification Suite")
    print("=" * 60)

    failed = 0
    tests = [(n, f) for n, f in globals().items() if n.startswith("test_") and callable(f)]
    for name, test in tests:
        try:
            test()
            print(f"  ok    {name}")
        except AssertionError as e:
            print(f"  FAIL  {name}: {e}")
            failed += 1

    print("\n" + "=" * 60)
    if not failed:
        print("ALL TESTS PASSED")
    else:
        print(f"{failed} TESTS FAILED")
        sys.exit(1)


if __name__ == "__main__":
    main()
