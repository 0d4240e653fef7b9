"""Command line entry point: convert local bundles, fetch from Apigee, or run the UI."""

import argparse
import logging
import sys
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from . import __version__
from .archive import ProxyArchive
from .client import ApigeeClient
from .config import Settings, setup_logging
from .converter import ConversionJob, convert_archive, convert_bundle, convert_many
from .errors import Apigee2OpenApiError
from .models import ConversionResult
from .output import dump_json, dump_yaml, save_document

logger = logging.getLogger(__name__)

FORMAT_CHOICES = {
    'yaml': ('yaml',),
    'json': ('json',),
    'both': ('yaml', 'json'),
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="apigee2openapi",
                                description="Convert Apigee proxy bundles to OpenAPI 3.0")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    convert = sub.add_parser("convert", help="Convert a local bundle zip or folder")
    convert.add_argument("bundle", help="ZIP or folder path")
    convert.add_argument("--name", help="Proxy name (detected from apiproxy/*.xml if omitted)")
    convert.add_argument("--hostname", action="append", default=[],
                         help="Hostname for the servers list; repeatable")
    _add_output_args(convert)
    convert.add_argument("--preview", action="store_true", help="Launch Swagger UI after conversion")

    fetch = sub.add_parser("fetch", help="Download bundles from the Apigee management API and convert")
    fetch.add_argument("org", help="Apigee organization")
    fetch.add_argument("proxy", nargs="?", help="API proxy name; all proxies if omitted")
    fetch.add_argument("revision", nargs="?", help="Revision; the latest if omitted")
    _add_output_args(fetch)
    fetch.add_argument("--workers", type=int, help="Parallel conversions")

    ui = sub.add_parser("ui", help="Launch simple upload UI")
    ui.add_argument("--port", type=int, default=5000)
    return p


def _add_output_args(parser: argparse.ArgumentParser):
    parser.add_argument("-o", "--output", help="Output directory; stdout if omitted")
    parser.add_argument("--format", choices=sorted(FORMAT_CHOICES), default="yaml")


def _report(name: str, result: ConversionResult):
    for diagnostic in result.diagnostics:
        print(f"{name}: {diagnostic}", file=sys.stderr)


def _emit(results: Sequence[tuple], output: Optional[str], fmt: str) -> List[Path]:
    """Write (name, result) pairs to a directory, or print them to stdout

    Returns the written paths; empty when printing.
    """
    formats = FORMAT_CHOICES[fmt]
    written = []
    if output:
        for name, result in results:
            for path in save_document(result.document, output, name, formats):
                print(f"✅ Saved {path}")
                written.append(path)
        return written
    dump = dump_json if formats == ('json',) else dump_yaml
    print("---\n".join(dump(result.document) for _, result in results), end="")
    return written


def cmd_convert(args, settings: Settings) -> int:
    archive = ProxyArchive.from_path(args.bundle)
    result = convert_archive(archive, args.name, args.hostname)
    name = args.name or archive.detect_proxy_name() or "openapi"
    _report(name, result)

    output = args.output
    if args.preview and not output:
        output = tempfile.mkdtemp()
    written = _emit([(name, result)], output, args.format)

    if args.preview:
        from .web import swagger_preview
        yaml_paths = [path for path in written if path.suffix == '.yaml']
        if not yaml_paths:
            yaml_paths = save_document(result.document, output, name, formats=('yaml',))
        swagger_preview(yaml_paths[0])
    return 0


def _latest_listed(record: dict) -> Optional[str]:
    revisions = record.get('revision') or []
    return str(max(int(r) for r in revisions)) if revisions else None


def cmd_fetch(args, settings: Settings) -> int:
    settings = settings.with_overrides(workers=args.workers)
    client = ApigeeClient(args.org, settings.require_token(), settings.base_url, settings.timeout)
    hostnames = client.get_hostnames()

    if args.proxy:
        bundle = client.get_bundle(args.proxy, args.revision)
        result = convert_bundle(bundle, args.proxy, hostnames)
        _report(args.proxy, result)
        _emit([(args.proxy, result)], args.output, args.format)
        return 0

    jobs: List[ConversionJob] = []
    for record in client.list_proxies():
        name = record['name']
        bundle = client.get_bundle(name, _latest_listed(record))
        jobs.append(ConversionJob(name, bundle, hostnames))
    logger.info(f"Converting {len(jobs)} proxies with {settings.workers} worker(s)")

    converted = []
    failed = 0
    for job, result, error in convert_many(jobs, settings.workers):
        if error is not None:
            print(f"{job.proxy_name}: {error}", file=sys.stderr)
            failed += 1
            continue
        _report(job.proxy_name, result)
        converted.append((job.proxy_name, result))
    _emit(converted, args.output, args.format)
    return 1 if failed else 0


def cmd_ui(args, settings: Settings) -> int:
    from .web import launch_ui
    launch_ui(args.port)
    return 0


COMMANDS = {
    "convert": cmd_convert,
    "fetch": cmd_fetch,
    "ui": cmd_ui,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = Settings.from_env()
        setup_logging("DEBUG" if args.verbose else settings.log_level)
        return COMMANDS[args.command](args, settings)
    except Apigee2OpenApiError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
