from __future__ import annotations

import argparse
import json

from infrastructure.config import Settings
from interface.api import build_selector


def serve(settings: Settings, host: str | None = None, port: int | None = None) -> None:
    import uvicorn

    uvicorn.run("interface.api:app", host=host or settings.host, port=port or settings.port)


def show_models(settings: Settings) -> int:
    selector = build_selector(settings)
    if selector is None:
        print(json.dumps({"error": "GEMINI_API_KEY not set"}, indent=2))
        return 1
    available = selector.available_models()
    print(json.dumps({
        "availableModels": available,
        "candidates": selector.order_candidates(available) if available else selector.candidates(),
        "currentModel": selector.current_model,
    }, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cashwise", description="CashWise cash-flow tracker")
    commands = parser.add_subparsers(dest="command")

    serve_cmd = commands.add_parser("serve", help="Run the HTTP API")
    serve_cmd.add_argument("--host", default=None)
    serve_cmd.add_argument("--port", type=int, default=None)

    commands.add_parser("models", help="List provider models usable for analysis")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    if args.command == "models":
        return show_models(settings)
    serve(settings, host=getattr(args, "host", None), port=getattr(args, "port", None))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
