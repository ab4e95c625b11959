"""
Command-line driver for Intcode programs.

Usage:
    intcode run program.txt -i 1
    intcode run program.txt --poke 1=12 --poke 2=2 --answer halt
    intcode run program.txt --interactive
    intcode run program.txt --lenient-reads     # relative-addressing programs
    intcode disasm program.txt
    intcode debug program.txt -i 5
"""

from __future__ import annotations

import argparse
import logging
import sys

from .channels import InteractiveProvider, QueuedInput, prompt_provider
from .host import Halted, WaitingForInput
from .loader import ProgramFormatError
from .machine import MachineConfig, MachineFault
from .program_runner import ProgramRunner, StepBudgetExceeded

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAULT = 1
EXIT_WAITING = 2
EXIT_BUDGET = 3


def _int_list(text: str) -> list[int]:
    try:
        return [int(v) for v in text.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated integers, got {text!r}") from None


def _poke(text: str) -> tuple[int, int]:
    addr, sep, value = text.partition("=")
    try:
        if not sep:
            raise ValueError
        addr_i, value_i = int(addr), int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected ADDR=VALUE, got {text!r}") from None
    if addr_i < 0:
        raise argparse.ArgumentTypeError(f"address must be non-negative, got {addr_i}")
    return addr_i, value_i


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="intcode", description="Intcode virtual machine")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_machine_args(p: argparse.ArgumentParser):
        p.add_argument("file", help="Program file (comma-separated integers)")
        p.add_argument("-i", "--input", type=_int_list, action="append", default=[],
                       help="Input values, comma-separated; repeatable")
        p.add_argument("--poke", type=_poke, action="append", default=[],
                       metavar="ADDR=VALUE", help="Patch memory before running; repeatable")
        p.add_argument("--word-bits", type=int, default=64, help="Signed word width (default 64)")
        p.add_argument("--lenient-reads", action="store_true",
                       help="Unwritten memory reads as 0 instead of faulting "
                            "(needed by most relative-addressing programs)")

    run_p = sub.add_parser("run", help="Run a program to completion")
    add_machine_args(run_p)
    run_p.add_argument("--interactive", action="store_true",
                       help="Prompt on stdin when the input queue runs dry")
    run_p.add_argument("--answer", choices=("output", "halt", "both"), default="output",
                       help="What to print: output values, the halt value (memory[0]), or both")
    run_p.add_argument("--max-steps", type=int, default=None,
                       help="Give up after this many instructions")
    run_p.add_argument("--trace", action="store_true", help="Log every instruction")
    run_p.add_argument("--stats", action="store_true", help="Print machine counters to stderr")

    dis_p = sub.add_parser("disasm", help="Disassemble a program")
    dis_p.add_argument("file", help="Program file")
    dis_p.add_argument("--start", type=int, default=0, help="First address")
    dis_p.add_argument("--count", type=int, default=1000, help="Instructions to list")

    dbg_p = sub.add_parser("debug", help="Step through a program in the TUI debugger")
    add_machine_args(dbg_p)
    dbg_p.add_argument("--run", action="store_true", help="Run immediately (auto-run mode)")
    return parser


def _make_runner(args, interactive: bool = False, trace: bool = False) -> ProgramRunner:
    source = InteractiveProvider(prompt_provider()) if interactive else QueuedInput()
    config = MachineConfig(
        word_bits=args.word_bits,
        strict_reads=not args.lenient_reads,
        input_source=source,
        trace=trace,
    )
    runner = ProgramRunner(config)
    runner.load_file(args.file)
    for addr, value in args.poke:
        runner.poke(addr, value)
    for values in args.input:
        runner.feed(values)
    return runner


def cmd_run(args) -> int:
    runner = _make_runner(args, interactive=args.interactive, trace=args.trace)
    try:
        result = runner.run(max_steps=args.max_steps)
    except StepBudgetExceeded as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BUDGET
    finally:
        if args.stats:
            print(runner.machine.stats_summary(), file=sys.stderr)

    logger.debug("stopped after %d steps: %s", runner.steps, result)
    if args.answer in ("output", "both"):
        for value in runner.outputs:
            print(value)
    if isinstance(result, Halted):
        if args.answer in ("halt", "both"):
            print(result.value)
        return EXIT_OK
    if isinstance(result, WaitingForInput):
        print(f"Waiting for input at ip={result.ip}; no more input supplied", file=sys.stderr)
        return EXIT_WAITING
    detail = f": {result.detail}" if result.detail else ""
    print(f"Fault: {result.kind} at ip={result.ip} (opcode={result.opcode}){detail}", file=sys.stderr)
    return EXIT_FAULT


def cmd_disasm(args) -> int:
    runner = ProgramRunner()
    runner.load_file(args.file)
    for addr, text in runner.vm.listing(args.start, args.count):
        print(f"{addr:5d}  {text}")
    return EXIT_OK


def cmd_debug(args) -> int:
    from .debugger import IntcodeDebugger

    runner = _make_runner(args)
    IntcodeDebugger(runner, auto_run=args.run).run()
    return EXIT_OK


COMMANDS = {"run": cmd_run, "disasm": cmd_disasm, "debug": cmd_debug}


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose or getattr(args, "trace", False) else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )
    try:
        return COMMANDS[args.command](args)
    except (OSError, ProgramFormatError, MachineFault) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAULT
    except ValueError as e:
        parser.error(str(e))


if __name__ == "__main__":
    sys.exit(main())
