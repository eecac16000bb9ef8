from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from mockable.core.config import Settings, load_settings
from mockable.core.generators.module_gen import generate_mock_module, output_path_for

_log = logging.getLogger("mockable.cli")


def _generate(args: argparse.Namespace, settings: Settings) -> int:
    source_path = Path(args.source)
    if not source_path.exists():
        print(f"ERROR: {source_path} not found.", file=sys.stderr)
        return 2

    module = args.module or source_path.stem
    portable = True if args.force_portable_lock else None
    source = source_path.read_text(encoding="utf-8")

    try:
        result = generate_mock_module(
            source,
            module,
            settings,
            force_portable_lock=portable,
            filename=str(source_path),
        )
    except SyntaxError as exc:
        print(f"ERROR: {source_path}:{exc.lineno}: {exc.msg}", file=sys.stderr)
        return 2

    if not result.ok:
        for diagnostic in result.diagnostics:
            print(diagnostic.format(str(source_path)), file=sys.stderr)
        return 1

    out_path = Path(args.out) if args.out else output_path_for(source_path, settings.output_suffix)

    if args.check:
        if not out_path.exists():
            print(f"ERROR: {out_path} missing. Run without --check to generate.", file=sys.stderr)
            return 2
        if out_path.read_text(encoding="utf-8") != result.text:
            print(f"ERROR: {out_path} is stale. Regenerate and commit.", file=sys.stderr)
            return 3
        print(f"OK: {out_path} matches.")
        return 0

    out_path.write_text(result.text, encoding="utf-8")
    print(f"Wrote: {out_path} ({len(result.mocks)} mock(s))")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="mockable", description="Generate mocks for @mockable protocols.")
    ap.add_argument("--config", default=None, help="YAML/JSON settings file (default $MOCKABLE_CONFIG_FILE)")
    sub = ap.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Write the mock module for one source file")
    gen.add_argument("source", help="Python file declaring @mockable protocols")
    gen.add_argument("--module", default=None, help="Import path of the source module (default: file stem)")
    gen.add_argument("-o", "--out", default=None, help="Output path (default <stem><output_suffix>.py)")
    gen.add_argument("--force-portable-lock", action="store_true", help="Always emit the LegacyLock variant")
    gen.add_argument("--check", action="store_true", help="Fail if the output file differs from regenerated")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(Path(args.config) if args.config else None)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
    _log.debug("Settings: %s", settings.model_dump())

    if args.command == "generate":
        return _generate(args, settings)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
