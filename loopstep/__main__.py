"""CLI entry point for loopstep.

Usage:
    python -m loopstep [-v...] [--speed MS] [--trace] <program_file>
    python -m loopstep [-v...] [--speed MS] [--trace] --preset ID
    python -m loopstep [-v...] --emit-steps <program_file>
    python -m loopstep [-v...] [--speed MS] [--trace] --steps <steps_json_file>
    python -m loopstep --list-presets

Options:
  -v              Increase debug verbosity (can be repeated)
  --speed MS      Milliseconds per nominal 500 ms step unit (default 0, instant)
  --trace         Print every applied step
  --emit-steps    Generate the step sequence of a program and write it as JSON
  --steps         Replay a previously emitted step JSON file
  --preset        Run one of the bundled example programs
  --list-presets  List the bundled example programs

Console output of the replayed program is printed to stdout. Debug
information is written to `debug.txt` in the current directory when
verbosity is greater than zero.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from .debug import DebugLog
from .presets import PRESETS, get_preset
from .replay import ReplayEngine
from .scheduler import StepGenerator
from .steps import MicroStep
from .steps_json import steps_to_obj, steps_from_obj
from .store import VisualizerStore
from .visualizer import Visualizer


class EchoStore(VisualizerStore):
    """In-memory store that also prints console lines as they appear."""
    def add_to_console(self, message: str):
        super().add_to_console(message)
        print(message)


def print_step(step: MicroStep):
    print(f"  [{step.describe()}]")


def read_source(path: str) -> str:
    program_file = Path(path)
    if not program_file.exists():
        print(f"Error: file {program_file} not found", file=sys.stderr)
        sys.exit(1)
    with open(program_file, 'r', encoding='utf-8') as f:
        return f.read()


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Event loop step generator and replayer")
    parser.add_argument('-v', action='count', default=0, help='increase debug verbosity (can be repeated)')
    parser.add_argument('--speed', type=float, default=0, metavar='MS',
                        help='milliseconds per nominal 500 ms unit (0 = instant)')
    parser.add_argument('--trace', action='store_true', help='print every applied step')
    group = parser.add_mutually_exclusive_group()
    group.add_argument('--emit-steps', metavar='PROGRAM_FILE', help='emit step JSON for the given program')
    group.add_argument('--steps', metavar='STEPS_JSON_FILE', help='replay steps from a JSON file')
    group.add_argument('--preset', metavar='ID', help='run a bundled example program')
    group.add_argument('--list-presets', action='store_true', help='list the bundled example programs')
    parser.add_argument('program', nargs='?', help='program file to run')
    args = parser.parse_args(argv)

    if args.list_presets:
        for preset in PRESETS:
            print(f"{preset.id:24} {preset.title}")
        return

    log = DebugLog(args.v)
    on_step = print_step if args.trace else None
    try:
        # Emit steps mode
        if args.emit_steps:
            source = read_source(args.emit_steps)
            result = StepGenerator(log=log).generate(source)
            if not result.success:
                print(f"Error: {result.message}", file=sys.stderr)
                sys.exit(1)
            program_file = Path(args.emit_steps)
            out_path = program_file.with_name(program_file.name + '.steps.json')
            with open(out_path, 'w', encoding='utf-8') as out:
                json.dump(steps_to_obj(result.steps), out, ensure_ascii=False, indent=2)
            print(str(out_path))
            return

        # Replay from step JSON
        if args.steps:
            steps_path = Path(args.steps)
            if not steps_path.exists():
                print(f"Error: file {steps_path} not found", file=sys.stderr)
                sys.exit(1)
            with open(steps_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            try:
                steps = steps_from_obj(data)
            except (TypeError, ValueError) as e:
                print(f"Error: invalid step file: {e}", file=sys.stderr)
                sys.exit(1)
            engine = ReplayEngine(EchoStore(), log, on_step)
            engine.load(steps)
            if not asyncio.run(engine.run(args.speed)):
                sys.exit(1)
            return

        # Default: run a program file or a preset
        if args.preset:
            preset = get_preset(args.preset)
            if preset is None:
                print(f"Error: unknown preset {args.preset}", file=sys.stderr)
                sys.exit(1)
            source = preset.code
        elif args.program:
            source = read_source(args.program)
        else:
            parser.error('missing program file; or use --preset/--steps/--emit-steps/--list-presets')

        visualizer = Visualizer(store=EchoStore(), log=log, on_step=on_step)
        result = asyncio.run(visualizer.run(source, args.speed))
        for warning in result.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
        if not result.success:
            sys.exit(1)
    finally:
        log.close()


if __name__ == '__main__':
    main()
