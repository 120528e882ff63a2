"""
CLI entry point

Offline access to the same services the API serves: ingest a saved
capture, ask a question, regenerate the master memory, reprocess, rebuild
the full-text index, or start the server.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from chatvault.core.errors import ChatVaultError, ModelUnavailableError


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatvault",
        description="ChatVault - personal memory and knowledge graph over captured chats",
    )
    parser.add_argument("--config", "-c", help="settings YAML (defaults to $CHATVAULT_CONFIG)")
    parser.add_argument("--log-level", help="override the configured log level")

    subparsers = parser.add_subparsers(dest="command", help="commands")

    ingest_parser = subparsers.add_parser("ingest", help="ingest a saved window-text capture")
    ingest_parser.add_argument("file", help="text file holding the captured window text")
    ingest_parser.add_argument("--app", required=True, help="application name, e.g. 'Claude' or 'Google Chrome'")
    ingest_parser.add_argument("--title", help="window title")

    ask_parser = subparsers.add_parser("ask", help="answer a question from stored memory")
    ask_parser.add_argument("question")
    ask_parser.add_argument("--app", help="restrict retrieval to one application")
    ask_parser.add_argument("--json", action="store_true", help="print the full retrieval result")

    subparsers.add_parser("regenerate-master", help="rebuild the master memory from all summaries")

    reprocess_parser = subparsers.add_parser("reprocess", help="re-run memory and entity extraction over all sessions")
    reprocess_parser.add_argument("--clean", action="store_true", help="delete memories and the graph first")

    subparsers.add_parser("rebuild-fts", help="rebuild the full-text indexes")

    serve_parser = subparsers.add_parser("serve", help="run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def run_cli(args: Optional[list] = None) -> int:
    """
    Run the CLI.

    Returns:
        process exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    if parsed.command == "serve":
        import uvicorn
        uvicorn.run("chatvault.api.main:app", host=parsed.host, port=parsed.port)
        return 0

    try:
        return asyncio.run(_dispatch(parsed))
    except ModelUnavailableError as e:
        print(f"Model unavailable: {e.message}", file=sys.stderr)
        return 2
    except ChatVaultError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


async def _dispatch(parsed: argparse.Namespace) -> int:
    from chatvault.application.wiring import build_services
    from chatvault.config.settings import load_settings
    from chatvault.infrastructure.logging import configure_logging

    settings = load_settings(parsed.config)
    configure_logging(parsed.log_level or settings.logging.level)
    services = build_services(settings)
    try:
        if parsed.command != "rebuild-fts":
            await services.check_model()

        if parsed.command == "ingest":
            return await _ingest(services, parsed)
        if parsed.command == "ask":
            result = await services.retriever.answer(parsed.question, app_name=parsed.app)
            if parsed.json:
                print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
            else:
                print(result.answer)
            return 0
        if parsed.command == "regenerate-master":
            content = await services.consolidator.regenerate(on_progress=_print_progress("master"))
            print(content or "(no summaries yet)")
            return 0
        if parsed.command == "reprocess":
            report = await services.reprocess.run(clean=parsed.clean, on_progress=_print_phase)
            print(json.dumps(report.to_dict(), indent=2))
            return 1 if report.errors else 0
        if parsed.command == "rebuild-fts":
            for name in services.index.rebuild():
                print(f"rebuilt {name}")
            return 0
        return 1
    finally:
        services.close()


async def _ingest(services, parsed: argparse.Namespace) -> int:
    from chatvault.memory.schema import CaptureEvent

    raw_text = Path(parsed.file).read_text(encoding="utf-8")
    outcome = await services.capture.ingest_capture(
        CaptureEvent(app_name=parsed.app, title=parsed.title, raw_text=raw_text)
    )
    results = await services.capture.drain()
    print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))
    for result in results:
        for stage in result.stages:
            print(f"  {stage.name}: {stage.status}" + (f" ({stage.error})" if stage.error else ""))
    return 1 if any(r.failed() for r in results) else 0


def _print_progress(label: str):
    def _report(current: int, total: int) -> None:
        print(f"[{label}] {current}/{total}", file=sys.stderr)
    return _report


def _print_phase(phase: str, processed: int, total: int) -> None:
    print(f"[{phase}] {processed}/{total}", file=sys.stderr)


if __name__ == "__main__":
    sys.exit(run_cli())
