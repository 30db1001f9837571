"""Command-line entry point: run, compile and format Wenyan programs, or start a REPL."""

import argparse
import sys
import time
from pathlib import Path

from termcolor import colored

from wenyan.wenyan_datatypes import WenyanError
from wenyan.wenyan_lexer import tokenize
from wenyan.wenyan_parser import parse
from wenyan.wenyan_printer import Printer
from wenyan.wenyan_runtime import ScriptRunner
from wenyan.wenyan_serialize import serialize, tokens_to_data, ast_to_data

EXIT_WORDS = ("exit", "致知")
PROMPT = " · "
# Each Wenyan call costs about nine interpreter frames.
RECURSION_LIMIT = 5000


def read_input(prompt: str) -> str:
    """Blocking line read used by the REPL. Returns "" at end of input."""
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return sys.stdin.readline()


def print_error(message: str):
    if sys.stderr.isatty():
        message = colored(message, "red")
    print(message, file=sys.stderr)


def describe_error(e: WenyanError) -> str:
    where = f" (line {e.line}, col {e.column})" if e.line is not None else ""
    return f"{e.kind}: {e.message}{where}"


def read_source(path):
    if path is None or path == "-":
        return sys.stdin.read()
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        print_error(f"Error: file not found: {path}")
        raise SystemExit(1)
    except UnicodeDecodeError as e:
        print_error(f"Error: {path} is not valid UTF-8 ({e.reason} at byte {e.start})")
        raise SystemExit(1)


# --- Commands ---

def run_command(args) -> int:
    """Run a program non-interactively; exit status 1 on any error."""
    result = ScriptRunner().handle_script(read_source(args.file))
    if result.status == 'error':
        print_error(result.format_error())
        return 1
    return 0


def compile_command(args) -> int:
    """Dump the token list and the AST of a program."""
    source = read_source(args.file)
    try:
        started = time.perf_counter()
        tokens = tokenize(source)
        if args.time:
            print(f"tokens: {(time.perf_counter() - started) * 1000:.1f}ms")
        started = time.perf_counter()
        program = parse(tokens)
        if args.time:
            print(f"ast: {(time.perf_counter() - started) * 1000:.1f}ms")
    except WenyanError as e:
        print_error(describe_error(e))
        return 1

    fmt = args.format
    tokens_path, ast_path = args.tokens, args.ast
    if tokens_path is None and ast_path is None:
        if args.file is None or args.file == "-":
            print(serialize(ast_to_data(program), fmt=fmt))
            return 0
        out_dir = Path(Path(args.file).stem)
        out_dir.mkdir(parents=True, exist_ok=True)
        tokens_path = out_dir / f"tokens.{fmt}"
        ast_path = out_dir / f"ast.{fmt}"

    if tokens_path is not None:
        Path(tokens_path).write_text(serialize(tokens_to_data(tokens), fmt=fmt), encoding="utf-8")
    if ast_path is not None:
        Path(ast_path).write_text(serialize(ast_to_data(program), fmt=fmt), encoding="utf-8")
    return 0


def format_command(args) -> int:
    """Print the canonical source of a program."""
    try:
        program = parse(tokenize(read_source(args.file)))
    except WenyanError as e:
        print_error(describe_error(e))
        return 1
    print(Printer().pformat(program))
    return 0


def repl_command(args) -> int:
    """Read one line at a time and run it in a persistent runner."""
    print("Wenyan REPL")
    print("Type 'exit' or '致知', or press Ctrl+D to quit.")

    runner = ScriptRunner()
    printer = Printer()

    while True:
        raw = read_input(PROMPT)
        if raw == "":
            print("\nExiting.")
            break
        line = raw.strip()
        if not line:
            continue
        if line in EXIT_WORDS:
            break

        result = runner.handle_script(line)
        if result.status == 'error':
            print_error(result.format_error())
            continue
        if result.value is not None:
            print(printer.pformat(result.value))
    return 0


COMMANDS = {
    "run": run_command,
    "compile": compile_command,
    "format": format_command,
    "repl": repl_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wenyan", description="Run and inspect Wenyan programs.")
    sub = parser.add_subparsers(dest="command")

    run_p = sub.add_parser("run", help="execute a program (stdin when FILE is omitted)")
    run_p.add_argument("file", nargs="?")

    compile_p = sub.add_parser("compile", help="dump tokens and AST")
    compile_p.add_argument("file", nargs="?")
    compile_p.add_argument("--tokens", metavar="PATH", help="where to write the token list")
    compile_p.add_argument("--ast", metavar="PATH", help="where to write the AST")
    compile_p.add_argument("--format", choices=("json", "yaml"), default="json")
    compile_p.add_argument("--time", action="store_true", help="print per-stage timings")

    format_p = sub.add_parser("format", help="print canonical source")
    format_p.add_argument("file", nargs="?")

    sub.add_parser("repl", help="interactive session (default)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if sys.getrecursionlimit() < RECURSION_LIMIT:
        sys.setrecursionlimit(RECURSION_LIMIT)
    try:
        return COMMANDS[args.command or "repl"](args)
    except KeyboardInterrupt:
        print("\nExiting.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
