"""
Command line interface for readwfs.

Examples:
    python -m readwfs layers https://example.com/WFSServer --pattern PARCEL
    python -m readwfs info https://example.com/WFSServer --layer ns:parcels
    python -m readwfs fields https://example.com/WFSServer ns:parcels
    python -m readwfs read https://example.com/WFSServer ns:parcels \\
        --bbox 523800 5250400 524400 5251000 --srs EPSG:28355 \\
        --max-features 100 --output parcels.gpkg
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .acquisition.connection import connect
from .acquisition.exceptions import AcquisitionError
from .config import load_config
from .reader import FeatureReader, read_dsn_for

logger = logging.getLogger("readwfs")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="readwfs",
        description="Read vector features from WFS, OGC API Features and ArcGIS REST services.",
    )
    parser.add_argument("--config", type=Path, help="YAML reader configuration")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("url", help="Service endpoint URL")
    common.add_argument(
        "--driver",
        default="auto",
        help="auto, WFS, OAPIF or ESRIJSON (default: auto)",
    )
    common.add_argument("--version", dest="wfs_version", help="WFS version, e.g. 2.0.0")
    common.add_argument("--srs", help="Target SRS, e.g. EPSG:4326")

    commands = parser.add_subparsers(dest="command", required=True)

    layers = commands.add_parser("layers", parents=[common], help="List layers")
    layers.add_argument("--pattern", help="Regular expression to filter layer names")

    info = commands.add_parser("info", parents=[common], help="Describe layers")
    info.add_argument("--layer", action="append", dest="layers", help="Layer to describe")

    fields = commands.add_parser("fields", parents=[common], help="List layer fields")
    fields.add_argument("layer", help="Layer name")

    read = commands.add_parser("read", parents=[common], help="Read features")
    read.add_argument("layer", help="Layer name")
    read.add_argument(
        "--bbox",
        nargs=4,
        type=float,
        metavar=("XMIN", "YMIN", "XMAX", "YMAX"),
        help="Bounding box in the target SRS",
    )
    read.add_argument("--max-features", type=int, help="Cap on returned features")
    read.add_argument("--where", help="OGR SQL attribute filter")
    read.add_argument("--page-size", type=int, help="Features per page")
    read.add_argument("--promote-to-multi", action="store_true")
    read.add_argument("--output", "-o", type=Path, help="Write features to this file")
    read.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the connection string instead of reading",
    )

    return parser


def _run(args: argparse.Namespace) -> int:
    config = load_config(args.config) if args.config else None
    reader = FeatureReader(config)

    if args.command == "layers":
        if args.pattern:
            names = reader.find_layers(
                args.url,
                args.pattern,
                driver=args.driver,
                version=args.wfs_version,
                srs=args.srs,
            )
        else:
            names = reader.list_layers(
                args.url, driver=args.driver, version=args.wfs_version, srs=args.srs
            )
        for name in names:
            print(name)
        return 0

    if args.command == "info":
        infos = reader.get_layer_metadata(
            args.url,
            layers=args.layers,
            driver=args.driver,
            version=args.wfs_version,
            srs=args.srs,
        )
        for info in infos:
            count = "unknown" if info.feature_count is None else f"{info.feature_count:,}"
            print(f"{info.name}")
            print(f"  geometry: {info.geom_type or '-'}")
            print(f"  features: {count}")
            print(f"  extent:   {info.extent or '-'}")
        return 0

    if args.command == "fields":
        fields = reader.list_fields(
            args.url, args.layer, driver=args.driver, version=args.wfs_version, srs=args.srs
        )
        print(f"{'Field Name':<30} {'Type':<10} {'Width':<6} {'Precision'}")
        print(f"{'-'*30} {'-'*10} {'-'*6} {'-'*9}")
        for field in fields:
            width = "" if field.width is None else field.width
            precision = "" if field.precision is None else field.precision
            print(f"{field.name:<30} {field.type:<10} {width!s:<6} {precision}")
        return 0

    if args.dry_run:
        connection = connect(
            args.url, driver=args.driver, version=args.wfs_version, srs=args.srs
        )
        request = reader.build_request(
            args.layer, args.bbox, args.max_features, args.where, args.page_size
        )
        print(read_dsn_for(connection, request))
        return 0

    result = reader.read_features(
        args.url,
        args.layer,
        bbox=args.bbox,
        max_features=args.max_features,
        where=args.where,
        driver=args.driver,
        version=args.wfs_version,
        srs=args.srs,
        page_size=args.page_size,
        promote_to_multi=args.promote_to_multi or None,
    )

    print(f"Read {len(result):,} features from '{args.layer}' "
          f"in {result.pages} request(s) ({result.strategy} paging)")
    if result.truncated:
        print(f"  WARNING: service reports {result.verdict.expected_total:,} features")
    if result.degraded:
        print("  WARNING: service could not be paged; result may be incomplete")

    if args.output:
        result.frame.to_file(args.output)
        print(f"  [OK] Wrote {args.output}")
    else:
        print(result.frame.head().to_string())

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for ``python -m readwfs`` and the ``readwfs`` script."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return _run(args)
    except AcquisitionError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
