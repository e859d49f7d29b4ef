"""CLI entrypoint for the mapbuilder choropleth renderer."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from .config import AppConfig, load_config
from .data import dump_map_data
from .io_geo import GeoDataRepository
from .render import format_render_lines, run_export_shapes, run_render_map
from .util import setup_logging
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("mapbuilder.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mapbuilder",
        description="Choropleth map renderer.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    validate_p = subparsers.add_parser("validate", help="Validate config and map data.")
    add_common(validate_p)

    render_p = subparsers.add_parser("render", help="Render the map image.")
    add_common(render_p)
    render_p.add_argument(
        "--output",
        default=None,
        help="Image path. Defaults to <paths.output_dir>/<chart.output_name>.<chart.format>.",
    )
    render_p.add_argument(
        "--no-manifest",
        action="store_true",
        help="Skip writing the render manifest JSON.",
    )
    render_p.add_argument(
        "--skip-validate",
        action="store_true",
        help="Render without running validation first.",
    )

    shapes_p = subparsers.add_parser(
        "export-shapes",
        help="Write device-space shapes, tooltip anchors and legend items as JSON.",
    )
    add_common(shapes_p)
    shapes_p.add_argument("--output", default=None, help="JSON output path.")

    geo_p = subparsers.add_parser(
        "import-geo",
        help="Convert a GeoJSON/shapefile into the map data YAML format.",
    )
    add_common(geo_p)
    geo_p.add_argument("--input", required=True, help="Vector file readable by GeoPandas.")
    geo_p.add_argument("--value-column", default=None, help="Column holding the data value.")
    geo_p.add_argument("--name-column", default=None, help="Column holding the region name.")
    geo_p.add_argument(
        "--precision",
        type=int,
        default=3,
        help="Decimal places kept for path coordinates.",
    )
    geo_p.add_argument(
        "--output",
        default=None,
        help="YAML output path. Defaults to paths.data from the config.",
    )

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    log_path = cfg.paths.logs_dir / "mapbuilder.log"
    setup_logging(log_path, verbose=args.verbose)
    for directory in cfg.paths.build_directories:
        directory.mkdir(parents=True, exist_ok=True)
    return cfg


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_render(
    cfg: AppConfig,
    *,
    output: str | None,
    write_manifest: bool,
    skip_validate: bool,
) -> int:
    LOGGER.info("Starting map render.")
    if not skip_validate:
        validation = Validator(cfg).run()
        for line in format_report_lines(validation):
            LOGGER.info(line)
        if not validation.ok:
            LOGGER.error("Render aborted due to validation errors.")
            return 1

    report = run_render_map(
        cfg,
        output_path=Path(output) if output else None,
        write_manifest=write_manifest,
    )
    for line in format_render_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_export_shapes(cfg: AppConfig, *, output: str | None) -> int:
    report = run_export_shapes(cfg, output_path=Path(output) if output else None)
    for line in format_render_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_import_geo(
    cfg: AppConfig,
    *,
    input_path: str,
    value_column: str | None,
    name_column: str | None,
    precision: int,
    output: str | None,
) -> int:
    if precision < 0:
        LOGGER.error("--precision must be >= 0")
        return 2
    repo = GeoDataRepository(Path(input_path))
    try:
        df = repo.load()
        points = repo.to_points(
            df,
            value_column=value_column,
            name_column=name_column,
            precision=precision,
        )
    except Exception as exc:
        LOGGER.error("Geo import failed: %s", exc)
        return 1
    if not points:
        LOGGER.error("No polygon regions found in %s", input_path)
        return 1
    output_path = Path(output) if output else cfg.paths.data
    dump_map_data(points, output_path)
    LOGGER.info("Wrote %d regions to %s", len(points), output_path)
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg)
    if command == "render":
        return _run_render(
            cfg,
            output=args.output,
            write_manifest=not bool(args.no_manifest) and cfg.build.write_manifest,
            skip_validate=bool(args.skip_validate),
        )
    if command == "export-shapes":
        return _run_export_shapes(cfg, output=args.output)
    if command == "import-geo":
        return _run_import_geo(
            cfg,
            input_path=str(args.input),
            value_column=args.value_column,
            name_column=args.name_column,
            precision=int(args.precision),
            output=args.output,
        )
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
