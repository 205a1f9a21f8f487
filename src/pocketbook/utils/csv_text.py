"""CSV text helpers shared by import and export."""

import csv
import io


def read_csv_rows(text: str) -> tuple[list[str], list[tuple[int, list[str]]]]:
    """Split CSV text into a header and numbered data rows.

    Blank lines are ignored. Quoted fields may contain commas and doubled
    quotes. Surrounding whitespace is stripped from every field.

    Args:
        text: Full CSV text

    Returns:
        Tuple of (header fields, [(line number, fields), ...]); line numbers
        are 1-based and count the header as line 1

    Raises:
        ValueError: If the text has no header line
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")), skipinitialspace=True)
    header: list[str] | None = None
    rows = []
    for fields in reader:
        if not fields or all(not f.strip() for f in fields):
            continue
        fields = [f.strip() for f in fields]
        if header is None:
            header = fields
        else:
            rows.append((reader.line_num, fields))
    if header is None:
        raise ValueError("CSV file is empty")
    return header, rows


def quote(value: str) -> str:
    """Wrap a string field in double quotes, doubling inner quotes."""
    return '"' + value.replace('"', '""') + '"'


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def parse_bool(value: str | None) -> bool:
    """Read a 'true'/'false' cell; anything but 'true' is false."""
    return (value or "").strip().lower() == "true"


def join_row(fields: list[str]) -> str:
    return ",".join(fields)
