"""Loader for canonical import records.

Provider adapters own the provider-specific formats. This module only reads
files that already use the canonical field names, either as CSV headers or as
JSON object keys.
"""

import csv
import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from payledger.domain.entities import ImportRecord
from payledger.domain.errors import ValidationError
from payledger.utils.date_parser import parse_timestamp

logger = logging.getLogger(__name__)

RECORD_FIELDS = tuple(f.name for f in fields(ImportRecord) if f.name != "raw_tx_id")


@dataclass
class RecordLoadResult:
    records: list[ImportRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _row_to_record(row: dict[str, Any], source: Optional[str]) -> ImportRecord:
    values: dict[str, Any] = {}
    for key in RECORD_FIELDS:
        value = row.get(key)
        if key == "transaction_time":
            values[key] = parse_timestamp(str(value))
        elif key == "provider":
            values[key] = (str(value).strip() if value else None) or source
        else:
            values[key] = "" if value is None else str(value).strip()
    return ImportRecord(**values)


def load_records(path: str, source: Optional[str] = None) -> RecordLoadResult:
    """Load canonical records from a CSV or JSON file.

    Rows without a transaction time or transaction number are skipped, as
    exports pad their tables with summary and blank lines. Rows whose
    timestamp cannot be parsed are reported in ``errors``.

    Args:
        path: Path to a .csv or .json file
        source: Source stamped onto records without a provider

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the file has no recognisable structure
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Record file not found: {path}")

    if file_path.suffix.lower() == ".json":
        rows = _read_json(file_path)
        first_row = 1
    else:
        rows = _read_csv(file_path)
        first_row = 2  # header is row 1

    result = RecordLoadResult()
    for row_num, row in enumerate(rows, start=first_row):
        if not str(row.get("transaction_time") or "").strip() or not str(row.get("transaction_no") or "").strip():
            continue
        try:
            result.records.append(_row_to_record(row, source))
        except ValueError as e:
            result.errors.append(f"Row {row_num}: {e}")
    logger.info("Loaded %d records from %s (%d errors)", len(result.records), path, len(result.errors))
    return result


def _read_csv(file_path: Path) -> list[dict[str, Any]]:
    with open(file_path, "r", encoding="utf-8-sig", newline="") as f:
        sample = f.read(4096)
        f.seek(0)
        try:
            delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t").delimiter
        except csv.Error:
            delimiter = ","
        reader = csv.DictReader(f, delimiter=delimiter)
        columns = [c.strip() for c in (reader.fieldnames or [])]
        missing = {"transaction_time", "transaction_no"} - set(columns)
        if missing:
            raise ValidationError(f"Record file missing required columns: {', '.join(sorted(missing))}")
        reader.fieldnames = columns
        return list(reader)


def _read_json(file_path: Path) -> list[dict[str, Any]]:
    with open(file_path, "r", encoding="utf-8-sig") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {file_path}: {e}") from e
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValidationError("JSON record file must contain a list of objects")
    return data
