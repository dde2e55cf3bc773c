from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, Union

from .builder import PackageBuilder
from .config import DEFAULT_LAYOUT, ExtractorConfig
from .errors import ExtractorError
from .layout import OCILayoutStore
from .models import BatchResult, PackageResult
from .store import ImageStore
from .utils import dump_json

logger = logging.getLogger("package_extractor")


def run_extraction(config: ExtractorConfig, store: ImageStore) -> Union[PackageResult, BatchResult]:
    builder = PackageBuilder(store)
    if config.extract_all:
        result: Union[PackageResult, BatchResult] = builder.extract_all(config.source, config.destination)
    else:
        result = builder.extract_one(config.source, config.destination, config.buildpack_id, config.version)

    if config.results_path is not None:
        dump_json(config.results_path, result.to_dict())
        logger.info("wrote results to %s", config.results_path)
    return result


def _config_from_args(args: argparse.Namespace, **extra: Any) -> ExtractorConfig:
    overrides: Dict[str, Any] = {
        "from": args.source,
        "to": getattr(args, "destination", None),
        "id": getattr(args, "id", None),
        "version": getattr(args, "version", None),
        "results": getattr(args, "results", None),
        "layout": args.layout,
    }
    overrides.update(extra)
    return ExtractorConfig.load(args.config, overrides)


def cmd_extract(args: argparse.Namespace) -> None:
    config = _config_from_args(args, all=False).validate()
    result = run_extraction(config, OCILayoutStore.open(config.layout))
    print(json.dumps(result.to_dict(), indent=2))


def cmd_extract_all(args: argparse.Namespace) -> None:
    config = _config_from_args(args, all=True).validate()
    result = run_extraction(config, OCILayoutStore.open(config.layout))
    print(json.dumps(result.to_dict(), indent=2))


def cmd_resolve(args: argparse.Namespace) -> None:
    config = _config_from_args(args, all=False).validate(require_destination=False)
    builder = PackageBuilder(OCILayoutStore.open(config.layout))
    print(json.dumps(builder.plan(config.source, config.buildpack_id, config.version), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract buildpackages from a builder image")
    parser.add_argument(
        "--layout",
        default=None,
        help=f"OCI image-layout directory holding source and output images (default: {DEFAULT_LAYOUT}).",
    )
    parser.add_argument("--config", default=None, help="JSON or YAML file with default settings.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_parser = subparsers.add_parser("extract", help="Extract one buildpack as a buildpackage")
    extract_parser.add_argument("--from", dest="source", help="Builder image to extract from")
    extract_parser.add_argument("--to", dest="destination", help="Buildpackage reference to write to")
    extract_parser.add_argument("--id", help="Buildpack id to extract")
    extract_parser.add_argument("--version", help="Buildpack version; required when several exist")
    extract_parser.add_argument("--results", help="Path to write the result JSON")
    extract_parser.set_defaults(func=cmd_extract)

    all_parser = subparsers.add_parser("extract-all", help="Extract every top-level buildpack of a builder")
    all_parser.add_argument("--from", dest="source", help="Builder image to extract from")
    all_parser.add_argument("--to", dest="destination", help="Repository prefix to write buildpackages under")
    all_parser.add_argument("--results", help="Path to write the batch result JSON")
    all_parser.set_defaults(func=cmd_extract_all)

    resolve_parser = subparsers.add_parser("resolve", help="Show what a buildpackage would contain")
    resolve_parser.add_argument("--from", dest="source", help="Builder image to read")
    resolve_parser.add_argument("--id", help="Buildpack id to resolve")
    resolve_parser.add_argument("--version", help="Buildpack version; required when several exist")
    resolve_parser.set_defaults(func=cmd_resolve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        args.func(args)
    except ExtractorError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
