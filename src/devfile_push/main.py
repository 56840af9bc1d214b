"""CLI entrypoint for devfile-push."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from devfile_push import __version__
from devfile_push.config import Settings, get_settings
from devfile_push.devfile import Link, PushParameters, load_devfile
from devfile_push.errors import DevfilePushError
from devfile_push.push import PushOrchestrator


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="devfile-push: deploy a devfile component to Kubernetes and keep its sources in sync.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--devfile", type=Path, default=Path("devfile.json"), help="Resolved devfile (JSON)")
    parser.add_argument("--component", "-c", required=True, help="Component name")
    parser.add_argument(
        "--namespace",
        "-n",
        default=None,
        help="Kubernetes namespace to operate in (default: from env or 'default')",
    )
    parser.add_argument(
        "--kubeconfig",
        type=Path,
        default=None,
        help="Path to kubeconfig (default: KUBECONFIG env or ~/.kube/config)",
    )
    parser.add_argument("--context", default=None, help="Kubernetes context to use")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="action", required=True)

    push = sub.add_parser("push", help="Create or update the component and sync sources")
    push.add_argument("--app", default=None, help="Application the component belongs to")
    push.add_argument("--build-command", default="", help="Devfile build command id")
    push.add_argument("--run-command", default="", help="Devfile run command id")
    push.add_argument("--debug-command", default="", help="Devfile debug command id")
    push.add_argument("--debug", action="store_true", help="Push in debug mode")
    push.add_argument("--debug-port", type=int, default=5858, help="Port the debugger listens on")
    push.add_argument("--force-build", "-f", action="store_true", help="Sync everything and rebuild")
    push.add_argument("--show-log", action="store_true", help="Stream command output")
    push.add_argument("--link", action="append", default=[], help="ServiceBinding to link (repeatable)")
    push.add_argument("--source", type=Path, default=Path.cwd(), help="Local source directory")
    push.add_argument("--ignore", action="append", default=[], help="Glob of files not to sync (repeatable)")

    test = sub.add_parser("test", help="Run the devfile test command")
    test.add_argument("--test-command", default="", help="Devfile test command id")
    test.add_argument("--show-log", action="store_true", help="Stream command output")

    exec_ = sub.add_parser("exec", help="Run a command in the component container")
    exec_.add_argument("argv", nargs=argparse.REMAINDER, help="Command to run")

    log = sub.add_parser("log", help="Show the component log")
    log.add_argument("--follow", action="store_true", help="Keep streaming")

    delete = sub.add_parser("delete", help="Delete the component")
    delete.add_argument("--show-log", action="store_true", help="Stream preStop command output")

    return parser.parse_args(argv)


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.kubeconfig:
        settings.kubeconfig = args.kubeconfig
    if args.context:
        settings.context = args.context
    if args.namespace:
        settings.namespace = args.namespace
    if getattr(args, "app", None):
        settings.app = args.app
    return settings


def _run(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    devfile = load_devfile(args.devfile)
    orchestrator = PushOrchestrator.from_settings(args.component, devfile, settings, console)

    if args.action == "push":
        params = PushParameters(
            namespace=settings.namespace,
            app=settings.app,
            build_command=args.build_command,
            run_command=args.run_command,
            debug_command=args.debug_command,
            debug_port=args.debug_port,
            debug=args.debug,
            show=args.show_log,
            force_build=args.force_build,
            links=[Link(name=name) for name in args.link],
            source_path=args.source,
            ignores=args.ignore,
        )
        orchestrator.push(params)
        return 0
    if args.action == "test":
        orchestrator.test(args.test_command, show=args.show_log)
        return 0
    if args.action == "exec":
        argv = [a for a in args.argv if a != "--"]
        if not argv:
            raise DevfilePushError("no command given to exec")
        orchestrator.exec(argv)
        return 0
    if args.action == "log":
        for line in orchestrator.log(follow=args.follow):
            print(line)
        return 0
    if args.action == "delete":
        orchestrator.delete(show=args.show_log)
        return 0
    raise DevfilePushError(f"unknown action {args.action}")


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for devfile-push CLI."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
    )
    logger = logging.getLogger("devfile_push")
    if not args.verbose:
        logger.setLevel(logging.WARNING)

    console = Console()
    try:
        settings = _apply_overrides(get_settings(), args)
        return _run(args, settings, console)
    except DevfilePushError as e:
        console.print(f"[red]✗ {e}[/red]")
        return 1
    except Exception as e:
        logging.exception("devfile-push failed")
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
