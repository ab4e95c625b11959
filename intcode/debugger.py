"""
Textual TUI debugger for the Intcode machine.

Instruction-stepping debugger that loads a program, runs it on the machine
and displays registers, memory and I/O at every step. Values typed into the
input box are queued for the program's input instructions.

Usage:
    python -m intcode.debugger program.txt
    python -m intcode.debugger program.txt -i 1,2 --run
"""

from __future__ import annotations

import argparse
import sys

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import ScrollableContainer
from textual.widgets import Static, RichLog, Footer, Input
from textual import work

from intcode.host import Halted, WaitingForInput, Faulted
from intcode.machine import STATE_NAMES, MachineConfig
from intcode.program_runner import ProgramRunner

MEMORY_ROW = 8
LISTING_BEFORE = 6
LISTING_LENGTH = 24


def _esc(text: str) -> str:
    """Escape Rich markup characters in text."""
    return text.replace("[", "\\[")


# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------

DEBUGGER_CSS = """
Screen {
    layout: grid;
    grid-size: 2 5;
    grid-columns: 1fr 1fr;
    grid-rows: 1fr 1fr 1fr auto auto;
}

.panel {
    border: solid $accent;
    border-title-align: left;
    overflow-y: auto;
    height: 100%;
}

#output-panel { column-span: 2; }

Input {
    column-span: 2;
}

Footer {
    column-span: 2;
}
"""


# ---------------------------------------------------------------------------
# Panel widgets
# ---------------------------------------------------------------------------

class ListingPanel(ScrollableContainer):
    """Disassembly around the instruction pointer."""
    BORDER_TITLE = "Disassembly"

    def compose(self) -> ComposeResult:
        yield Static("", id="listing-content")


class StatePanel(ScrollableContainer):
    """Machine state: registers, counters."""
    BORDER_TITLE = "Machine State"

    def compose(self) -> ComposeResult:
        yield Static("", id="state-content")


class MemoryPanel(ScrollableContainer):
    """Memory dump, instruction pointer highlighted."""
    BORDER_TITLE = "Memory"

    def compose(self) -> ComposeResult:
        yield Static("", id="memory-content")


class IOPanel(ScrollableContainer):
    """Pending input queue and undrained output."""
    BORDER_TITLE = "IO"

    def compose(self) -> ComposeResult:
        yield Static("", id="io-content")


class OutputPanel(ScrollableContainer):
    """Accumulated program output."""
    BORDER_TITLE = "Output"

    def compose(self) -> ComposeResult:
        yield RichLog(id="output-log", markup=True, wrap=True)


# ---------------------------------------------------------------------------
# Main debugger app
# ---------------------------------------------------------------------------

class IntcodeDebugger(App):
    """Textual TUI debugger for the Intcode machine."""

    CSS = DEBUGGER_CSS
    TITLE = "Intcode Debugger"

    BINDINGS = [
        Binding("s", "step_1", "Step"),
        Binding("space", "step_1", "Step", show=False),
        Binding("n", "step_10", "x10"),
        Binding("f", "step_100", "x100"),
        Binding("r", "run_to_end", "Run"),
        Binding("b", "toggle_breakpoint", "Break"),
        Binding("i", "focus_input", "Input"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, runner: ProgramRunner, auto_run: bool = False):
        super().__init__()
        self.runner = runner
        self.auto_run = auto_run
        self.breakpoints: set[int] = set()
        self._output_line_count = 0

    def compose(self) -> ComposeResult:
        yield ListingPanel(id="listing-panel", classes="panel")
        yield StatePanel(id="state-panel", classes="panel")
        yield MemoryPanel(id="memory-panel", classes="panel")
        yield IOPanel(id="io-panel", classes="panel")
        yield OutputPanel(id="output-panel", classes="panel")
        yield Input(placeholder="input values, comma-separated (Enter to queue)", id="input-box")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#listing-panel").focus()
        self.refresh_panels()
        if self.auto_run:
            self.action_run_to_end()

    # -------------------------------------------------------------------
    # Panel refresh
    # -------------------------------------------------------------------

    def refresh_panels(self) -> None:
        self._refresh_listing()
        self._refresh_state()
        self._refresh_memory()
        self._refresh_io()
        self._refresh_output()

    def _refresh_listing(self) -> None:
        vm = self.runner.vm
        ip = vm.ip
        # Walk from a little before ip; decoding may not land on ip exactly
        # when data is interleaved with code, so always include ip itself.
        listing = vm.listing(max(0, ip - LISTING_BEFORE), LISTING_LENGTH)
        if ip not in {addr for addr, _ in listing}:
            listing = vm.listing(ip, LISTING_LENGTH)
        lines = []
        for addr, text in listing:
            prefix = "●" if addr in self.breakpoints else " "
            marker = "▸" if addr == ip else " "
            line = f"{prefix}{marker} {addr:5d}│ {_esc(text)}"
            if addr == ip:
                line = f"[bold reverse]{line}[/bold reverse]"
            lines.append(line)
        content = self.query_one("#listing-content", Static)
        content.update("\n".join(lines) if lines else "(no program loaded)")

    def _refresh_state(self) -> None:
        m = self.runner.machine
        result = self.runner.last_result
        if isinstance(result, Halted):
            result_text = f"halted, memory[0] = {result.value}"
        elif isinstance(result, WaitingForInput):
            result_text = f"waiting for input at ip={result.ip}"
        elif isinstance(result, Faulted):
            result_text = _esc(f"{result.kind} at ip={result.ip} (opcode={result.opcode}) {result.detail}")
        else:
            result_text = "-"

        text = (
            f"[bold]State:[/bold] {STATE_NAMES[m.state]}    [bold]Cycle:[/bold] {m.cycles}\n"
            f"[bold]IP:[/bold] {m.ip.value}  [bold]RB:[/bold] {m.rb.value}  "
            f"[bold]Opcode:[/bold] {m.opcode}\n"
            f"[bold]Result:[/bold] {result_text}\n"
            f"[bold]Memory:[/bold] {len(m.memory)} words (peak {m.memory.peak})  "
            f"{m.mem_reads}R/{m.mem_writes}W\n"
            f"[bold]IO:[/bold] {m.io_ops}  [bold]Phase:[/bold] {self.runner.phase}\n"
            f"[bold]Source:[/bold] {_esc(self.runner.source)}"
        )
        content = self.query_one("#state-content", Static)
        content.update(text)

    def _refresh_memory(self) -> None:
        m = self.runner.machine
        words = m.memory.snapshot()
        ip = m.ip.value
        lines = []
        for row in range(0, len(words), MEMORY_ROW):
            cells = []
            for addr in range(row, min(row + MEMORY_ROW, len(words))):
                cell = f"{words[addr]:>8d}"
                if addr == ip:
                    cell = f"[green]{cell}[/green]"
                cells.append(cell)
            lines.append(f"{row:5d}: " + " ".join(cells))
        content = self.query_one("#memory-content", Static)
        content.update("\n".join(lines) if lines else "(empty)")

    def _refresh_io(self) -> None:
        vm = self.runner.vm

        def fmt(values: list[int]) -> str:
            return ", ".join(str(v) for v in values) if values else "(empty)"

        text = (
            f"[bold]IN:[/bold]  {fmt(vm.pending_input)}\n"
            f"[bold]OUT:[/bold] {fmt(self.runner.outputs[-16:])}"
        )
        content = self.query_one("#io-content", Static)
        content.update(text)

    def _refresh_output(self) -> None:
        log = self.query_one("#output-log", RichLog)
        while self._output_line_count < len(self.runner.output_lines):
            log.write(self.runner.output_lines[self._output_line_count])
            self._output_line_count += 1

    # -------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------

    def feed_text(self, text: str) -> bool:
        """Queue comma-separated integers. Returns False on bad input."""
        try:
            values = [int(v) for v in text.split(",") if v.strip()]
        except ValueError:
            log = self.query_one("#output-log", RichLog)
            log.write(f"[red]not an integer list:[/red] {_esc(text)}")
            return False
        self.runner.feed(values)
        self.refresh_panels()
        return True

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if self.feed_text(event.value):
            event.input.value = ""
        self.query_one("#listing-panel").focus()

    def action_focus_input(self) -> None:
        self.query_one("#input-box", Input).focus()

    # -------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------

    def _do_steps(self, count: int) -> None:
        for _ in range(count):
            if not self.runner.tick():
                break
        self.refresh_panels()

    def action_step_1(self) -> None:
        self._do_steps(1)

    def action_step_10(self) -> None:
        self._do_steps(10)

    def action_step_100(self) -> None:
        self._do_steps(100)

    def action_toggle_breakpoint(self) -> None:
        ip = self.runner.vm.ip
        if ip in self.breakpoints:
            self.breakpoints.discard(ip)
        else:
            self.breakpoints.add(ip)
        self._refresh_listing()

    @work(thread=True)
    def action_run_to_end(self) -> None:
        """Run until halt, fault, starvation or a breakpoint, in a background thread."""
        cycle = 0
        while self.runner.tick():
            cycle += 1
            if self.runner.vm.ip in self.breakpoints:
                break
            if cycle % 500 == 0:
                self.call_from_thread(self.refresh_panels)
        self.call_from_thread(self.refresh_panels)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="Intcode TUI debugger",
        prog="python -m intcode.debugger",
    )
    parser.add_argument("file", help="Path to program file")
    parser.add_argument("-i", "--input", default="",
                        help="Initial input values, comma-separated")
    parser.add_argument("--run", action="store_true",
                        help="Run immediately (auto-run mode)")
    parser.add_argument("--lenient-reads", action="store_true",
                        help="Unwritten memory reads as 0 instead of faulting")
    args = parser.parse_args()

    runner = ProgramRunner(MachineConfig(strict_reads=not args.lenient_reads))
    try:
        runner.load_file(args.file)
        runner.feed(int(v) for v in args.input.split(",") if v.strip())
    except FileNotFoundError:
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    app = IntcodeDebugger(runner, auto_run=args.run)
    app.run()


if __name__ == "__main__":
    main()
