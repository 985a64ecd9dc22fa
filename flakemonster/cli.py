#!/usr/bin/env python3
"""
Command-line entry point for flakemonster.

Subcommands:
  inject   Inject deterministic async delays into source files in place.
  restore  Remove injected delays, from the manifest or by recovery scan.
  scan     Preview which lines recovery would remove, without touching files.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

from flakemonster import __version__
from flakemonster.adapters import create_default_registry
from flakemonster.config import load_config, merge_with_cli_options
from flakemonster.engine import FileScanResult, InjectorEngine
from flakemonster.manifest import Manifest, get_manifest_dir
from flakemonster.profile import VALID_MODES, FlakeProfile
from flakemonster.seed import parse_seed

_REASON_TAGS = {"stamp": "stamp", "identifier": "ident", "import": "import"}


def confirm(question: str) -> bool:
    """Ask a yes/no question on stdin; anything but "y" means no."""
    try:
        answer = input(question)
    except EOFError:
        return False
    return answer.strip().lower() == "y"


def print_scan_results(scan_results: list[FileScanResult]) -> int:
    """Print recovery matches per file and return the total line count."""
    total = 0
    for result in scan_results:
        count = len(result.matches)
        print(f"\n  {result.file} ({count} match{'' if count == 1 else 'es'}):")
        for match in result.matches:
            tag = _REASON_TAGS.get(match.reason, match.reason)
            print(f"    L{match.line} [{tag}] {match.content.strip()}")
            total += 1
    print(f"\n  Total: {total} line(s) across {len(scan_results)} file(s)")
    return total


def _make_engine(config: dict[str, Any]) -> InjectorEngine:
    return InjectorEngine(create_default_registry(), FlakeProfile.from_config(config))


def cmd_inject(args: argparse.Namespace) -> int:
    project_root = Path(args.root).resolve()
    config = merge_with_cli_options(load_config(project_root), args)
    seed = parse_seed(args.seed)
    engine = _make_engine(config)
    globs = args.globs or config["include"]
    manifest_dir = get_manifest_dir(project_root)

    existing = Manifest.load(manifest_dir)
    if existing is not None:
        print(
            f"[~] Active injection detected (seed: {existing.seed}, mode: {existing.mode}, "
            f"injected at: {existing.created_at})."
        )
        if not (args.yes or confirm("Restore source files before re-injecting? (y/N) ")):
            print("Aborted. Run `flakemonster restore` manually to clean up.", file=sys.stderr)
            return 1
        engine.restore_all(project_root, existing)
        Manifest.delete(manifest_dir)
        print("[+] Previous injections removed. Proceeding with fresh injection.\n")

    print(f"[*] Injecting into {project_root} ...", file=sys.stderr)
    manifest = engine.inject_all(project_root, globs, seed, config["exclude"])
    if not manifest.get_files():
        print("[~] No injection points found. Nothing was modified.")
        return 0

    manifest.save(manifest_dir)
    print(
        f"[+] Injected {manifest.get_total_injections()} delays into "
        f"{len(manifest.get_files())} file(s)"
    )
    print(f"Mode: {engine.profile.mode} | Seed: {seed}")
    if engine.skipped:
        print(f"[!] {len(engine.skipped)} file(s) skipped, see warnings above.", file=sys.stderr)
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    project_root = Path(args.root).resolve()
    config = load_config(project_root)
    target = Path(args.dir).resolve() if args.dir else project_root
    manifest_dir = get_manifest_dir(target)
    manifest = Manifest.load(manifest_dir)

    if manifest is None:
        if not args.recover:
            print("No manifest found. Nothing to restore.")
            print(f"Looked in: {manifest_dir}")
            return 0
        # No ledger to follow: fall back to scanning by glob.
        engine = _make_engine(config)
        globs = args.globs or config["include"]
        print("[*] No manifest found, scanning by glob for injected lines...")
        scan_results = engine.scan_by_globs(target, globs, config["exclude"])
        if not scan_results:
            print("No injected lines found. Files appear clean.")
            return 0
        print_scan_results(scan_results)
        if not (args.yes or confirm("\n  Remove these lines? (y/N) ")):
            print("  Aborted. No files were modified.")
            return 0
        summary = engine.restore_by_globs(target, globs, config["exclude"])
        print(
            f"\n[+] Recovered {summary.files_restored} file(s), "
            f"removed {summary.lines_removed} line(s)"
        )
        return 0

    engine = _make_engine({**config, "mode": manifest.mode})
    if args.recover:
        print("[*] Recovery mode: scanning for injected lines...")
        scan_results = engine.scan_all(target, manifest)
        if not scan_results:
            print("No injected lines found. Files appear clean.")
            return 0
        print_scan_results(scan_results)
        if not (args.yes or confirm("\n  Remove these lines? (y/N) ")):
            print("  Aborted. No files were modified.")
            return 0

    summary = engine.restore_all(target, manifest)
    Manifest.delete(manifest_dir)
    print(
        f"[+] Restored {summary.files_restored} file(s), "
        f"removed {summary.lines_removed} line(s)"
    )
    if summary.tampered:
        print(
            f"[!] {len(summary.tampered)} file(s) were modified after injection; review them.",
            file=sys.stderr,
        )
    return 0


def cmd_scan(args: argparse.Namespace) -> int:
    project_root = Path(args.root).resolve()
    config = load_config(project_root)
    engine = _make_engine(config)
    globs = args.globs or config["include"]
    scan_results = engine.scan_by_globs(project_root, globs, config["exclude"])
    if not scan_results:
        print("No injected lines found. Files appear clean.")
        return 0
    print_scan_results(scan_results)
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--root", default=".", help="Project root holding the config and manifest (default: cwd)."
    )

    parser = argparse.ArgumentParser(
        prog="flakemonster",
        description="Surface hidden async ordering bugs by injecting deterministic delays.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s inject --seed 42                 # Inject into the configured include globs
  %(prog)s inject 'lib/**/*.py' -m hardcore # Inject into Python files, every statement
  %(prog)s restore                          # Undo using the manifest
  %(prog)s restore --recover                # Preview, confirm, then strip leftovers
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    inject = sub.add_parser("inject", parents=[common], help="Inject async delays into source files.")
    inject.add_argument("globs", nargs="*", help="File patterns to process (default: config include).")
    inject.add_argument("-m", "--mode", choices=VALID_MODES, help="Injection density.")
    inject.add_argument(
        "-s", "--seed", default="auto", help='Seed for deterministic delays, or "auto" (default).'
    )
    inject.add_argument("--min-delay", dest="min_delay_ms", type=int, help="Minimum delay in ms.")
    inject.add_argument("--max-delay", dest="max_delay_ms", type=int, help="Maximum delay in ms.")
    inject.add_argument(
        "-e", "--exclude", nargs="+", help="Glob patterns to exclude (appended to config)."
    )
    inject.add_argument(
        "--include-generators", action="store_true", help="Also inject into async generators."
    )
    inject.add_argument(
        "-y", "--yes", action="store_true", help="Restore an active injection without asking."
    )
    inject.set_defaults(func=cmd_inject)

    restore = sub.add_parser(
        "restore", parents=[common], help="Remove injected delays and restore the source."
    )
    restore.add_argument(
        "globs", nargs="*", help="Patterns for manifest-free recovery (default: config include)."
    )
    restore.add_argument(
        "--recover",
        action="store_true",
        help="Scan and confirm first; falls back to glob scanning when no manifest exists.",
    )
    restore.add_argument("--dir", help="Directory to restore (defaults to the project root).")
    restore.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation.")
    restore.set_defaults(func=cmd_restore)

    scan = sub.add_parser("scan", parents=[common], help="Preview lines recovery would remove.")
    scan.add_argument("globs", nargs="*", help="File patterns to scan (default: config include).")
    scan.set_defaults(func=cmd_scan)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to a subcommand."""
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
