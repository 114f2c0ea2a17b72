from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from stock_audit.config.loader import DEFAULT_CONFIG_PATH, AuditConfig, ConfigError, apply_env_overrides, load_config
from stock_audit.excel.reader import ImportFailure, read_sheet_file
from stock_audit.excel.writer import ExportFailure
from stock_audit.logging.error_log import ErrorLogBuffer
from stock_audit.logging.init import enable_debug, log_summary, setup_logging
from stock_audit.models.column_mapping import ColumnMapping, Role
from stock_audit.services.column_mapper import MappingValidationError, keywords_from_config, suggest_mapping
from stock_audit.services.controller import AuditController
from stock_audit.services.progress import ProgressTracker
from stock_audit.services.session_store import SessionStore, format_age
from stock_audit.services.storage import FileSessionStorage, PersistenceFailure
from stock_audit.services.summary import render_summary_line

"""CLI entrypoint.

Commands:
- inspect FILE               headers, row count and suggested column mapping
- audit FILE [options]       map, apply counts, print SUMMARY, export report
- session show|clear         look at or drop the saved in-progress session
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_MAPPING_INVALID = 2


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="stock-audit", description="Physical inventory audit against a book-stock sheet")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    sub = p.add_subparsers(dest="command", required=True)

    ins = sub.add_parser("inspect", help="Show headers and the suggested column mapping")
    ins.add_argument("file", type=Path)

    aud = sub.add_parser("audit", help="Apply physical counts and export the audit report")
    aud.add_argument("file", type=Path)
    aud.add_argument("--counts", type=Path, default=None, help="YAML file: material code -> qty or {qty, remarks}")
    aud.add_argument(
        "--map", action="append", default=[], metavar="ROLE=COLUMN",
        help="Override a role (code, desc, qty, uom, rate, physical, remarks) with a column index or header; 'none' ignores it",
    )
    aud.add_argument("--out", type=Path, default=None, help="Export directory (default from config)")
    aud.add_argument("--no-export", action="store_true", help="Only save the session, do not export")
    aud.add_argument("--discard-session", action="store_true", help="Drop any saved session instead of resuming it")

    ses = sub.add_parser("session", help="Saved session maintenance")
    ses.add_argument("action", choices=["show", "clear"])
    return p.parse_args(argv)


def _resolve_config(path: Path | None) -> AuditConfig:
    if path is None:
        cfg = load_config(DEFAULT_CONFIG_PATH) if DEFAULT_CONFIG_PATH.exists() else AuditConfig()
    else:
        cfg = load_config(path)
    return apply_env_overrides(cfg)


def _build_store(cfg: AuditConfig) -> SessionStore:
    return SessionStore(
        FileSessionStorage(cfg.session_file),
        max_age=timedelta(hours=cfg.session_max_age_hours),
    )


def _parse_column(value: str, headers: list[str]) -> int | None:
    text = value.strip()
    if text.lower() in ("none", "-", "ignore", ""):
        return None
    if text.isdigit():
        return int(text)
    lowered = [h.strip().lower() for h in headers]
    if text.lower() in lowered:
        return lowered.index(text.lower())
    raise MappingValidationError(f"no column named {value!r}")


def apply_overrides(mapping: ColumnMapping, overrides: list[str], headers: list[str]) -> ColumnMapping:
    for override in overrides:
        if "=" not in override:
            raise MappingValidationError(f"invalid --map {override!r}: expected ROLE=COLUMN")
        role_text, col_text = override.split("=", 1)
        try:
            role = Role.parse(role_text)
        except ValueError as e:
            raise MappingValidationError(str(e)) from e
        mapping = mapping.with_role(role, _parse_column(col_text, headers))
    return mapping


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def load_counts(path: Path) -> dict[str, tuple[str, str | None]]:
    """Counts file: ``code: qty`` or ``code: {qty: .., remarks: ..}``; a top-level ``counts:`` key is optional."""
    try:
        # scalars stay as typed strings (00123 is not read as octal)
        data = yaml.load(path.read_text(encoding="utf-8"), Loader=yaml.BaseLoader) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"counts file unreadable: {e}") from e
    if isinstance(data, dict) and isinstance(data.get("counts"), dict):
        data = data["counts"]
    if not isinstance(data, dict):
        raise ConfigError("counts file must be a mapping of material code to quantity")
    counts: dict[str, tuple[str, str | None]] = {}
    for code, entry in data.items():
        if isinstance(entry, dict):
            remarks = entry.get("remarks")
            counts[str(code)] = (_cell_text(entry.get("qty")), None if remarks is None else str(remarks))
        else:
            counts[str(code)] = (_cell_text(entry), None)
    return counts


def _apply_counts(controller: AuditController, counts: dict[str, tuple[str, str | None]], logger) -> int:
    unknown = 0
    with ProgressTracker(len(counts), description="Applying counts") as progress:
        for code, (qty, remarks) in counts.items():
            items = controller.index.find_by_code(code)
            if not items:
                unknown += 1
                logger.warning(f"code not found in sheet: {code}")
            for item in items:
                controller.set_physical_qty(item, qty)
                if remarks is not None:
                    controller.set_remarks(item, remarks)
            progress.advance()
    return unknown


def _inspect(path: Path, cfg: AuditConfig) -> int:
    try:
        sheet = read_sheet_file(path)
    except ImportFailure as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    headers = sheet.rows[0]
    print(f"FILE: {path.name}")
    print(f"  SHEET: {sheet.sheet_name} rows={len(sheet.rows) - 1} cols={headers}")
    mapping = suggest_mapping(headers, keywords_from_config(cfg.keywords))
    for label, shown in mapping.describe(headers):
        print(f"    {label}: {shown}")
    return EXIT_SUCCESS


def _session(action: str, store: SessionStore) -> int:
    if action == "clear":
        store.clear()
        print("session cleared")
        return EXIT_SUCCESS
    record = store.load()
    if record is None:
        print("no saved session")
        return EXIT_SUCCESS
    counted = sum(1 for s in record.materials.values() if s.physical_qty)
    print(f"FILE: {record.file_name}")
    print(f"  saved {format_age(record.age(store.now()))}, {counted}/{len(record.materials)} materials counted")
    return EXIT_SUCCESS


async def _audit(args: argparse.Namespace, cfg: AuditConfig, logger, error_log: ErrorLogBuffer) -> int:
    controller = AuditController(_build_store(cfg), config=cfg, error_log=error_log)
    if controller.startup() is not None:
        if args.discard_session:
            controller.decline_restore()
        else:
            controller.accept_restore()

    try:
        outcome = await controller.import_file(args.file)
    except ImportFailure:
        return EXIT_FATAL
    logger.info(f"sheet={outcome.sheet_name} rows={outcome.row_count} restored={outcome.restored}")

    if args.map or not outcome.restored:
        base = controller.mapping or controller.suggest_mapping()
        try:
            mapping = apply_overrides(base, args.map, controller.buffer.headers)
            controller.confirm_mapping(mapping)
        except MappingValidationError as e:
            logger.error(f"mapping: {e}")
            return EXIT_MAPPING_INVALID

    if args.counts is not None:
        try:
            counts = load_counts(args.counts)
        except ConfigError as e:
            logger.error(f"counts: {e}")
            return EXIT_FATAL
        unknown = _apply_counts(controller, counts, logger)
        logger.info(f"applied {len(counts) - unknown} counts ({unknown} unknown codes)")

    summary_line = render_summary_line(controller.summary())
    log_summary(summary_line[len("SUMMARY "):])

    if args.no_export:
        controller.suspend()
        return EXIT_SUCCESS
    try:
        target = await controller.export(args.out)
    except ExportFailure:
        # keep the counts for a later retry
        controller.suspend()
        return EXIT_FATAL
    logger.info(f"report written: {target}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    load_dotenv(dotenv_path=Path(".env"), override=True)

    if args.debug:
        enable_debug(logger)
        logger.debug("debug mode enabled")

    try:
        cfg = _resolve_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "inspect":
        return _inspect(args.file, cfg)
    if args.command == "session":
        try:
            return _session(args.action, _build_store(cfg))
        except PersistenceFailure as e:
            logger.error(f"session: {e}")
            return EXIT_FATAL

    error_log = ErrorLogBuffer()
    try:
        return asyncio.run(_audit(args, cfg, logger, error_log))
    finally:
        log_path = error_log.flush()
        if log_path is not None:
            logger.info(f"error log: {log_path}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
