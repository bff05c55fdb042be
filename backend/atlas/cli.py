"""Command-line entry point.

Usage:
  python -m atlas serve                       # run the API on 127.0.0.1:8000
  python -m atlas serve --host 0.0.0.0 --port 3000
  python -m atlas openapi > openapi.json      # print the OpenAPI document
"""

import argparse
import json
import sys


def cmd_serve(args):
    import uvicorn

    uvicorn.run("atlas.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def cmd_openapi(args):
    from atlas.main import app

    print(json.dumps(app.openapi(), indent=2 if args.pretty else None))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atlas",
        description="Tabletop Atlas - board game rules management and rules chat API",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Address to bind (default 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind (default 8000)")
    serve_parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    serve_parser.set_defaults(func=cmd_serve)

    openapi_parser = subparsers.add_parser("openapi", help="Print the OpenAPI document and exit")
    openapi_parser.add_argument("--pretty", action="store_true", help="Indent the JSON output")
    openapi_parser.set_defaults(func=cmd_openapi)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
