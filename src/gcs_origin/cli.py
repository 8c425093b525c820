import argparse
from collections.abc import Sequence

from gcs_origin.__about__ import __version__
from gcs_origin.utils.config import Settings
from gcs_origin.utils.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gcs-origin", description="Serve a GCS bucket as a CDN origin.")
    commands = parser.add_subparsers(dest="command")
    serve = commands.add_parser("serve", help="run the origin server")
    serve.add_argument("--host", default=None, help="bind address (default: $HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="bind port (default: $PORT or 8080)")
    serve.add_argument("--bucket", default=None, help="bucket to serve (default: $GCS_BUCKET_NAME)")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    print(f"gcs-origin v{__version__}")
    if args.command != "serve":
        return

    settings = Settings.from_env()
    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port
    if args.bucket:
        settings.bucket_name = args.bucket
    configure_logging(settings.log_level, settings.log_format)

    from gcs_origin.server.api import OriginServer

    OriginServer(settings).run()


if __name__ == "__main__":
    main()
