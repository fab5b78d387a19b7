#!/usr/bin/env python3
"""Command-line interface for the materials converter.

Commands:
  parse [in-doc] [out-json]                      Materials document -> JSON tree dump
  generate-template [in-json] [out-xlsx]         Tree dump (or --from-xml document) -> template workbook
  import-xlsx [in-xlsx] [out-doc] [original-doc] Edited workbook -> materials document (or --report)
  serve                                          Run the report server
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from rich.box import ROUNDED
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from models.schemas import MaterialsReport
from services.config import get_settings
from services.errors import IntegrityViolation, MaterialsError
from services.fileio import atomic_write_bytes
from services.logging_config import setup_logging
from services.materials import generate_template, generate_template_from_xml, import_xlsx, report_xlsx
from services.report_store import save_report
from services.tree_codec import parse_xml_file

logger = logging.getLogger(__name__)

console = Console()

EXIT_ERROR = 1
EXIT_INTEGRITY = 2
PER_PARENT_LIMIT = 10


def _cwd_file(name: str) -> str:
    return str(Path.cwd() / name)


def _require_input(path: str, label: str) -> None:
    if not Path(path).is_file():
        raise FileNotFoundError(f"{label} not found: {path}")


# =============================================================================
# REPORT OUTPUT
# =============================================================================

def _counts_table(report: MaterialsReport) -> Table:
    table = Table(title="XLSX report", box=ROUNDED, border_style="blue")
    table.add_column("Sheet", style="cyan")
    table.add_column("Rows", justify="right")
    for label, count in (
        ("Materials", report.materials),
        ("Panels", report.panels),
        ("Layers", report.layers),
        ("Textures", report.textures),
        ("Edges", report.edges),
    ):
        table.add_row(label, str(count))
    return table


def _group_table(title: str, groups: list, value_key: str, ids_key: str, parent_key: Optional[str] = None) -> Table:
    table = Table(title=title, box=ROUNDED, border_style="red")
    if parent_key:
        table.add_column(parent_key, style="dim")
    table.add_column(value_key, style="yellow")
    table.add_column("rows", justify="right")
    table.add_column(ids_key, style="dim")
    for group in groups:
        data = group.model_dump()
        cells = [str(data[parent_key])] if parent_key else []
        cells += [
            str(data[value_key]) if data[value_key] is not None else "(blank)",
            ", ".join(str(r) for r in data["rows"]),
            ", ".join(str(v) for v in data[ids_key]),
        ]
        table.add_row(*cells)
    return table


def _per_parent_table(title: str, counts: Dict[str, str], limit: Optional[int]) -> Table:
    table = Table(title=title, box=ROUNDED, border_style="dim")
    table.add_column("Parent", style="cyan")
    table.add_column("Count", justify="right")
    keys = list(counts)
    for key in keys[:limit] if limit else keys:
        table.add_row(key, counts[key])
    return table


def print_report(report: MaterialsReport, brief: bool = False, full: bool = False) -> None:
    console.print(_counts_table(report))

    groups = [
        ("Duplicate material names", report.duplicate_material_names, "name", "ids", None),
        ("Duplicate material ids", report.duplicate_material_ids, "id", "names", None),
        ("Duplicate panel names (per material)", report.duplicate_panel_names, "panel_name", "panel_ids", "material_id"),
        ("Duplicate layer names (per panel)", report.duplicate_layer_names, "layer_name", "layer_ids", "panel_id"),
        ("Duplicate textures (material+position)", report.duplicate_textures, "position", "texture_ids", "material_id"),
        ("Duplicate edge names (per material)", report.duplicate_edge_names, "name", "edge_ids", "material_id"),
    ]
    for title, items, value_key, ids_key, parent in groups:
        if items:
            console.print(_group_table(title, items, value_key, ids_key, parent))

    if report.missing_material_names:
        console.print(
            "[yellow]Materials rows with no name:[/yellow] "
            + ", ".join(str(r) for r in report.missing_material_names)
        )

    if report.orphan_rows:
        table = Table(title="Orphan rows (dropped on import)", box=ROUNDED, border_style="yellow")
        for column in ("Sheet", "Row", "Id", "Parent"):
            table.add_column(column)
        for orphan in report.orphan_rows:
            table.add_row(
                orphan.sheet,
                str(orphan.row or ""),
                orphan.id,
                f"{orphan.parent_column}={orphan.parent_id}",
            )
        console.print(table)

    limit = None if full else PER_PARENT_LIMIT
    console.print(_per_parent_table(
        "Panels per material", {k: str(v) for k, v in report.panels_per_material.items()}, limit,
    ))
    if brief:
        return

    console.print(_per_parent_table(
        "Layers per panel", {k: str(v) for k, v in report.layers_per_panel.items()}, limit,
    ))
    console.print(_per_parent_table(
        "Textures per material",
        {k: f"top={c.top}, bottom={c.bottom}, other={c.other}" for k, c in report.textures_per_material.items()},
        limit,
    ))
    console.print(_per_parent_table(
        "Edges per material", {k: str(v) for k, v in report.edges_per_material.items()}, limit,
    ))

    if full:
        for sheet, rows in report.sample.model_dump().items():
            if not rows:
                continue
            table = Table(title=f"Sample: {sheet}", box=ROUNDED, border_style="dim")
            for column in rows[0]:
                table.add_column(column)
            for row in rows:
                table.add_row(*(str(v) if v is not None else "" for v in row.values()))
            console.print(table)


# =============================================================================
# SUBCOMMANDS
# =============================================================================

def _cmd_parse(args: argparse.Namespace) -> None:
    tree = parse_xml_file(args.input)
    atomic_write_bytes(args.output, json.dumps(tree, indent=2, ensure_ascii=False).encode("utf-8"))
    console.print(f"[green]Parsed JSON written to[/green] {args.output}")


def _cmd_generate_template(args: argparse.Namespace) -> None:
    if args.from_xml:
        _require_input(args.input, "Materials document")
        row_sets = generate_template_from_xml(args.input, args.output)
    else:
        _require_input(args.input, "JSON file")
        row_sets = generate_template(args.input, args.output)
    counts = ", ".join(f"{name}={count}" for name, count in row_sets.counts().items())
    console.print(f"[green]Template generated:[/green] {args.output} ({counts})")


def _cmd_import_xlsx(args: argparse.Namespace) -> None:
    _require_input(args.input, "XLSX file")

    if args.report:
        report = report_xlsx(args.input)
        print_report(report, brief=args.report_brief, full=args.report_full)
        path = save_report(report, out_path=args.report_out)
        console.print(f"\nReport saved to {path}")
        return

    result = import_xlsx(args.input, args.output, original_path=args.original, force=args.force)
    if result.backup_path:
        console.print(f"Backup: {result.backup_path}")
    console.print(f"[green]Import finished:[/green] {result.out_path} ({result.materials} materials)")


def _cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_config=None,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="matapp",
        description="Convert a materials database to an editable workbook and back.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: MATAPP_LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("parse", help="Parse a materials document to a JSON tree dump")
    p.add_argument("input", nargs="?", default=_cwd_file("materials_test.db"))
    p.add_argument("output", nargs="?", default=_cwd_file("materials_parsed.json"))
    p.set_defaults(func=_cmd_parse)

    p = sub.add_parser("generate-template", help="Generate the editable workbook")
    p.add_argument("input", nargs="?", default=_cwd_file("materials_parsed.json"))
    p.add_argument("output", nargs="?", default=_cwd_file("materials_template.xlsx"))
    p.add_argument("--from-xml", action="store_true", help="Input is the materials document itself")
    p.set_defaults(func=_cmd_generate_template)

    p = sub.add_parser("import-xlsx", help="Import an edited workbook into a materials document")
    p.add_argument("input", nargs="?", default=_cwd_file("materials_template.xlsx"))
    p.add_argument("output", nargs="?", default=_cwd_file("materials_new.db"))
    p.add_argument("original", nargs="?", default=None, help="Original document to back up first")
    p.add_argument("--force", action="store_true", help="Import despite duplicate material names/ids")
    p.add_argument("--report", action="store_true", help="Only report on the workbook; write nothing")
    p.add_argument("--report-out", default=None, help="Where to save the report JSON")
    p.add_argument("--report-brief", action="store_true", help="Short per-parent summary")
    p.add_argument("--report-full", action="store_true", help="All per-parent counts and sample rows")
    p.set_defaults(func=_cmd_import_xlsx)

    p = sub.add_parser("serve", help="Run the report server")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)
    p.set_defaults(func=_cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    settings = get_settings()
    setup_logging(args.log_level or settings.log_level, settings.log_json)

    try:
        args.func(args)
    except IntegrityViolation as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        console.print(
            "\nImport aborted due to duplicate materials. "
            "Re-run with --force to override (not recommended)."
        )
        return EXIT_INTEGRITY
    except (MaterialsError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return EXIT_ERROR
    return 0


if __name__ == "__main__":
    sys.exit(main())
