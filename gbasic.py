import asyncio
import sys
from pathlib import Path

from gbasic.basic_config import load_config, configure_logging
from gbasic.basic_runtime import ScriptRunner
from gbasic.basic_printer import Printer


# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


def _print_output(result):
    for effect in result.side_effects:
        if effect.get('topics') == ['stdout']:
            print(effect.get('message', ''))


async def run_script_file(file_path: str):
    """Run a script file non-interactively and exit with appropriate status."""
    config = load_config()
    configure_logging(config)
    runner = ScriptRunner(config=config)
    printer = Printer()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = await runner.handle_script(source)
    _print_output(result)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    if result.value is not None:
        print(printer.pformat(result.value))


async def main():
    """Run a script file when provided, otherwise start the interactive REPL."""
    if len(sys.argv) > 1:
        arg = sys.argv[1]
        if not arg.startswith("-"):
            await run_script_file(arg)
            return

    print("gbasic REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    config = load_config()
    configure_logging(config)
    runner = ScriptRunner(config=config)
    printer = Printer()
    # One session for the whole REPL so variables and ON ERROR state persist
    session = runner.new_session("repl")

    while True:
        try:
            raw = await ainput(">> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line.lower() == "exit":
                break

            result = await runner.handle_script(line, session)

            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)
                continue

            _print_output(result)
            if result.value is not None:
                print(printer.pformat(result.value))

        except EOFError:
            print("\nExiting.")
            break
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)

    session.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")
