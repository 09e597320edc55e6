"""Command-line interface for china-gtfs."""

import argparse
import logging
import sys

from china_gtfs.api import convert, convert_all, read_city_codes, validate
from china_gtfs.geo.codec import decode_combined_geometry
from china_gtfs.gtfs.models import ConvertConfig
from china_gtfs.metroman.client import DEFAULT_BASE_URL, MetromanClient
from china_gtfs.version import VERSION


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _parse_bool(value: str) -> bool:
    return value.lower() == "true"


def _config_from_args(args: argparse.Namespace, city_code: str = "") -> ConvertConfig:
    return ConvertConfig(
        city_code=city_code,
        output_path=args.output,
        base_url=args.base_url,
        timeout=args.timeout,
        debug_json=args.debug_json,
        use_cache=args.use_cache,
        keep_archive=args.keep_archive,
        station_geometries_path=args.station_geometries,
        jobs=getattr(args, "jobs", 1),
    )


def cmd_convert(args: argparse.Namespace) -> int:
    """Execute convert command."""
    setup_logging(args.verbose)

    config = _config_from_args(args, args.city)
    config.agency_name = args.agency_name

    try:
        manifest = convert(config)
        print("\nConversion successful!")
        print(f"Output: {args.output}")
        print(f"Stats: {manifest.stats}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Conversion failed")
        return 1


def cmd_load_all(args: argparse.Namespace) -> int:
    """Execute load-all command."""
    setup_logging(args.verbose)

    config = _config_from_args(args)

    try:
        codes = read_city_codes(args.city_csv)
        manifests, failures = convert_all(codes, config)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Batch conversion failed")
        return 1

    print(f"\nConverted {len(manifests)} of {len(codes)} cities")
    if failures:
        print(f"Failed ({len(failures)}):")
        for code, error in sorted(failures.items()):
            print(f"  - {code}: {error}")
        return 1
    return 0


def cmd_versions(args: argparse.Namespace) -> int:
    """Execute versions command."""
    setup_logging(args.verbose)

    try:
        versions = MetromanClient(args.base_url, timeout=args.timeout).fetch_versions()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Fetching versions failed")
        return 1

    for code in sorted(versions):
        print(f"{code}\t{versions[code]}")
    return 0


def cmd_decode_geo(args: argparse.Namespace) -> int:
    """Execute decode-geo command."""
    setup_logging(args.verbose)

    try:
        geometries = decode_combined_geometry(args.geometry)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Decoding failed")
        return 1

    if not geometries:
        print("Error: geometry decoded to no points", file=sys.stderr)
        return 1

    for n, geometry in enumerate(geometries):
        kind = geometry.geo_type.name if geometry.geo_type is not None else "UNKNOWN"
        print(f"# segment {n} ({kind}, {len(geometry.points)} points)")
        for point in geometry.to_wgs84():
            print(f"{point.lat:.6f},{point.lng:.6f}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute validate command."""
    setup_logging(args.verbose)

    try:
        report = validate(args.input)
        if report.valid:
            print("\nValidation successful!")
            print(f"Stats: {report.stats}")
            if report.warnings:
                print(f"Warnings ({len(report.warnings)}):")
                for warning in report.warnings:
                    print(f"  - {warning}")
            return 0
        else:
            print(f"\nValidation failed with {len(report.errors)} errors:")
            for error in report.errors:
                print(f"  - {error}")
            return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Validation failed")
        return 1


def _add_fetch_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help="MetroMan archive host (default: public MetroMan bucket)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="HTTP timeout in seconds (default: 30)",
    )


def _add_output_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output", default="./build", help="Output directory (default: ./build)"
    )
    parser.add_argument(
        "--debug-json",
        type=_parse_bool,
        default=False,
        help="Also write loose GTFS tables and JSON dumps of the city (default: false)",
    )
    parser.add_argument(
        "--use-cache",
        type=_parse_bool,
        default=True,
        help="Reuse feeds and archives already in the output directory (default: true)",
    )
    parser.add_argument(
        "--keep-archive",
        type=_parse_bool,
        default=True,
        help="Keep a backup of the raw archive (default: true)",
    )
    parser.add_argument(
        "--station-geometries",
        default=None,
        help="JSON file mapping station codes to Baidu encoded geometries",
    )


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="china-gtfs",
        description="Convert MetroMan subway archives to GTFS",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Convert command
    convert_parser = subparsers.add_parser("convert", help="Convert one city to GTFS")
    convert_parser.add_argument("--city", required=True, help="MetroMan city code (e.g. bj)")
    convert_parser.add_argument(
        "--agency-name", default=None, help="City name used in agency.txt (default: city code)"
    )
    _add_output_arguments(convert_parser)
    _add_fetch_arguments(convert_parser)
    convert_parser.set_defaults(func=cmd_convert)

    # Load-all command
    load_all_parser = subparsers.add_parser("load-all", help="Convert every city of a city list")
    load_all_parser.add_argument(
        "--city-csv", required=True, help="CSV file with a metroman_code column"
    )
    load_all_parser.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="Number of cities converted in parallel (default: 1)",
    )
    _add_output_arguments(load_all_parser)
    _add_fetch_arguments(load_all_parser)
    load_all_parser.set_defaults(func=cmd_load_all)

    # Versions command
    versions_parser = subparsers.add_parser("versions", help="List published archive versions")
    _add_fetch_arguments(versions_parser)
    versions_parser.set_defaults(func=cmd_versions)

    # Decode-geo command
    decode_parser = subparsers.add_parser(
        "decode-geo", help="Decode a Baidu geometry string to WGS-84 points"
    )
    decode_parser.add_argument("geometry", help="Encoded geometry, segments joined with '|'")
    decode_parser.set_defaults(func=cmd_decode_geo)

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a generated GTFS zip")
    validate_parser.add_argument("--input", required=True, help="Path to a .gtfs.zip file")
    validate_parser.set_defaults(func=cmd_validate)

    # Parse and execute
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
