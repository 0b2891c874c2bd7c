import sys
from pathlib import Path
from typing import List, Optional

from tram.tram_datatypes import NIL
from tram.tram_printer import Printer
from tram.tram_runtime import ScriptRunner


def read_line(prompt: str) -> str:
    """Reads one line for the REPL; raises EOFError at end of input."""
    return input(prompt)


def run_script_file(file_path: str):
    """Run a Tram script file non-interactively and exit with appropriate status."""
    p = Path(file_path)
    if not p.is_file():
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    runner = ScriptRunner(source_dir=str(p.parent.resolve()))
    result = runner.run_file(str(p.resolve()))
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    if result.value is not NIL:
        print(Printer().pformat(result.value))


def repl():
    print("Tram REPL v0.1")
    print("Type 'quit' or press Ctrl+D to quit.")

    runner = ScriptRunner(source_dir=str(Path.cwd()))
    printer = Printer()

    while True:
        try:
            line = read_line("> ")
        except EOFError:
            break
        if not line.strip():
            continue
        if line.strip() == "quit":
            break

        result = runner.handle_script(line)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            continue
        if result.value is not NIL:
            print(printer.pformat(result.value))

    print("\nbye!")


def main(argv: Optional[List[str]] = None):
    """Run a script file when provided, otherwise start the interactive REPL."""
    args = sys.argv[1:] if argv is None else argv
    try:
        if args and not args[0].startswith("-"):
            run_script_file(args[0].strip())
            return
        repl()
    except KeyboardInterrupt:
        print("\nbye!")


if __name__ == "__main__":
    main()
