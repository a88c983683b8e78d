"""
Record Export / Import

Two export formats, byte-compatible with what the mobile app shares:

PLAIN TEXT - one line per record, for pasting into a chat:
    🧋珍奶｜飲食｜$50｜250520 1510

CSV - for spreadsheets:
    icon,title,amount,category,timestamp,note
    "🧋","珍奶",50,"飲食","2025-05-20T15:10+08:00","小確幸"

Every CSV field is quoted except amount. Commas inside a note become
semicolons (a lossy rule kept for compatibility with existing exports).

import_csv() reads the CSV format back into fresh records.
"""

import csv
import io
from typing import Iterable

from tapmoney.models.expense import CIVIL_TIMEZONE, ExpenseRecord
from tapmoney.services.parser.transcoder import format_timestamp, parse_timestamp


CSV_HEADER = ["icon", "title", "amount", "category", "timestamp", "note"]


class CsvImportError(Exception):
    """A CSV row could not be turned into a record."""

    def __init__(self, line_number: int, message: str):
        self.line_number = line_number
        super().__init__(f"line {line_number}: {message}")


def export_plain_text(records: Iterable[ExpenseRecord]) -> str:
    """One `<icon><title>｜<category>｜$<amount>｜<yyMMdd HHmm>` line per record."""
    lines = []
    for record in records:
        when = record.timestamp.astimezone(CIVIL_TIMEZONE).strftime("%y%m%d %H%M")
        lines.append(
            f"{record.icon}{record.title}｜{record.category}｜${record.amount}｜{when}"
        )
    return "\n".join(lines)


def export_csv(records: Iterable[ExpenseRecord]) -> str:
    """CSV export in input order, without a trailing newline."""
    buffer = io.StringIO()
    buffer.write(",".join(CSV_HEADER) + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    for record in records:
        note = (record.note or "").replace(",", ";")
        writer.writerow([
            record.icon,
            record.title,
            record.amount,
            record.category,
            format_timestamp(record.timestamp),
            note,
        ])
    return buffer.getvalue().removesuffix("\n")


def import_csv(text: str) -> list[ExpenseRecord]:
    """
    Read an export_csv() document back into new records.

    An empty note becomes None. Every record gets a new id.

    Raises:
        CsvImportError: On a wrong header, a non-integer amount or a bad timestamp
    """
    reader = csv.reader(io.StringIO(text))
    try:
        header = next(reader)
    except StopIteration:
        return []

    if [h.strip() for h in header] != CSV_HEADER:
        raise CsvImportError(1, f"unexpected header {header}")

    records = []
    for row in reader:
        line_number = reader.line_num
        if not row:
            continue
        if len(row) != len(CSV_HEADER):
            raise CsvImportError(
                line_number, f"expected {len(CSV_HEADER)} fields, got {len(row)}"
            )
        icon, title, amount, category, timestamp, note = row
        try:
            parsed_amount = int(amount)
        except ValueError:
            raise CsvImportError(line_number, f"amount '{amount}' is not an integer")
        try:
            parsed_timestamp = parse_timestamp(timestamp)
        except ValueError as e:
            raise CsvImportError(line_number, str(e))

        records.append(ExpenseRecord(
            icon=icon,
            title=title,
            amount=parsed_amount,
            category=category,
            timestamp=parsed_timestamp,
            note=note or None,
        ))
    return records
