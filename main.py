import argparse
import sys
from pathlib import Path

from loguru import logger
from PySide6.QtCore import QCoreApplication, QTimer

from tedit.log import configure_logging
from tedit.lsp import LspError, LspSession
from tedit.lsp.types import CompletionRequest, DidOpen, Position
from tedit.settings import load_settings


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tedit",
        description="Open a file in a language server and print completions at a position.",
    )
    parser.add_argument("file", help="file to open")
    parser.add_argument("--line", type=int, default=1, help="1-based cursor line")
    parser.add_argument("--column", type=int, default=1, help="1-based cursor column")
    parser.add_argument("--program", default="", help="language server executable (overrides settings)")
    parser.add_argument("--timeout-ms", type=int, default=30000, help="give up after this many milliseconds")
    parser.add_argument("--verbose", action="store_true", help="log protocol traffic")
    return parser.parse_args(argv)


def _cursor_position(text: str, line: int, column: int) -> Position:
    lines = text.splitlines() or [""]
    line0 = max(0, min(len(lines) - 1, line - 1))
    return Position.from_cursor(lines[line0], line0, max(0, column - 1))


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    path = Path(args.file).expanduser()
    if not path.is_file():
        print(f"tedit: no such file: {path}", file=sys.stderr)
        return 2

    settings = load_settings(Path.cwd())
    configure_logging(
        "DEBUG" if args.verbose else str(settings.get("logging.level", "INFO")),
        str(settings.get("logging.file", "") or ""),
    )

    app = QCoreApplication.instance() or QCoreApplication([sys.argv[0]])
    session = LspSession.from_settings(settings)
    if args.verbose:
        session.client.set_log_traffic(True)

    outcome = {"timed_out": False, "items": 0}

    def print_completions() -> None:
        for result in session.responses.drain():
            for item in result.items:
                outcome["items"] += 1
                print(item.label if not item.detail else f"{item.label}\t{item.detail}")

    def on_deadline() -> None:
        outcome["timed_out"] = True
        session.close("Timed out waiting for the language server")

    session.responses.itemAvailable.connect(print_completions)
    session.statusMessage.connect(lambda text: logger.info("status: {}", text))
    session.closed.connect(lambda _reason: app.quit())

    text = path.read_text(encoding="utf-8", errors="replace")
    uri = session.client.path_to_uri(str(path))
    session.intents.put(DidOpen(uri=uri, text=text))
    session.intents.put(CompletionRequest(uri=uri, position=_cursor_position(text, args.line, args.column)))
    session.intents.close()

    program = args.program or str(settings.get("lsp.program", "rust-analyzer"))
    try:
        session.start(
            program,
            settings.lsp_args(),
            cwd=str(Path.cwd()),
            spawn_timeout_ms=int(settings.get("lsp.spawn_timeout_ms", 5000)),
        )
    except LspError as exc:
        logger.error("Could not start language server: {}", exc)
        return 1

    deadline = QTimer()
    deadline.setSingleShot(True)
    deadline.timeout.connect(on_deadline)
    deadline.start(max(1, args.timeout_ms))
    app.exec()
    print_completions()

    if outcome["timed_out"]:
        return 1
    logger.debug("Printed {} completion item(s)", outcome["items"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
