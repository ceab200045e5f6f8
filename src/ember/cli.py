"""Command line utilities for Ember."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
from pathlib import Path
from typing import Sequence

from .application import CLIENT_MODULE_NAME, EmberApp
from .bridge import generate_models_js

PROJECT_NAME = "ember"


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=PROJECT_NAME, description="Ember management commands")
    sub = parser.add_subparsers(dest="command", required=True)

    routes = sub.add_parser("routes", help="Print the route table of an application")
    routes.add_argument("app", help="Application to load, as module:attribute")
    routes.set_defaults(func=_cmd_routes)

    bridge = sub.add_parser("bridge", help="Write the generated client models script")
    bridge.add_argument("app", help="Application to load, as module:attribute")
    bridge.add_argument("--output", default=None, help="Destination file (defaults to stdout)")
    bridge.add_argument("--module-name", default=CLIENT_MODULE_NAME, help="Angular module the services attach to")
    bridge.set_defaults(func=_cmd_bridge)

    serve = sub.add_parser("serve", help="Serve an application with Granian")
    serve.add_argument("app", help="Application to load, as module:attribute")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=3000)
    serve.add_argument("--workers", type=int, default=1)
    serve.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    serve.set_defaults(func=_cmd_serve)

    return parser


def load_app(target: str) -> EmberApp:
    """Import ``module:attribute`` and return the application it names."""

    module_name, _, attribute = target.partition(":")
    if not module_name:
        raise SystemExit(f"Invalid application path {target!r}; expected module:attribute")
    module = importlib.import_module(module_name)
    app = getattr(module, attribute or "app", None)
    if callable(app) and not isinstance(app, EmberApp):
        app = app()
    if not isinstance(app, EmberApp):
        raise SystemExit(f"{target!r} does not reference an EmberApp")
    return app


def _cmd_routes(args: argparse.Namespace) -> int:
    app = load_app(args.app)
    asyncio.run(app.startup())
    for route in app.routes():
        print(route.describe())
    return 0


def _cmd_bridge(args: argparse.Namespace) -> int:
    app = load_app(args.app)
    if app.models is None:
        raise SystemExit("Application exposes no models")
    source = generate_models_js(app.models, args.module_name, api_prefix=app.config.api_prefix)
    if args.output is None:
        print(source)
    else:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(source, encoding="utf-8")
        print(f"wrote {output}")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    from .server import ServerConfig, run

    logging.basicConfig(level=args.log_level.upper())
    app = load_app(args.app)
    run(app, ServerConfig(host=args.host, port=args.port, workers=args.workers))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
