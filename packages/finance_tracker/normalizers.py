"""Statement CSV → :class:`NormalizedTransaction` normalizer.

Two layouts are recognized from the header row:

- **ledger**: single-currency bank statement with ``date``, ``description``
  and ``amount`` columns (case-insensitive) and an optional running balance.
  Amounts are already in the reporting currency.
- **transfer**: Wise-style transfer export with exact-case ``Source
  currency``, ``Target currency`` and ``Direction`` columns. Each completed row
  is reduced to a single signed reporting-currency amount.

Parsing follows RFC 4180 via the stdlib :mod:`csv` module (UTF-8, optional
BOM, quoted fields with embedded commas/newlines). Structural problems raise
before any row is processed; every per-row problem is logged and the row is
skipped. The module performs no I/O and holds no state.
"""

from __future__ import annotations

import csv
import io
import json
import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation

from .errors import CsvFormatError, MissingColumnError, UnrecognizedFormatError
from .logging_setup import get_logger
from .models import DateRange, ExchangeRateConfig, NormalizedTransaction

logger = get_logger("finance_tracker.normalizers")

TRANSFER_PLACEHOLDER_DESCRIPTION = "Wise Transaction"

# Everything except ASCII digits, the decimal point and the minus sign.
_AMOUNT_NOISE = re.compile(r"[^0-9.\-]")

_FALLBACK_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)

# ---------------------------------------------------------------------------
# Layout tables
# ---------------------------------------------------------------------------


def resolve_header(aliases: Sequence[str], headers: Sequence[str]) -> str | None:
    """Return the first header (in header order) matching any alias, ignoring case."""

    wanted = {a.lower() for a in aliases}
    for h in headers:
        if h.lower() in wanted:
            return h
    return None


@dataclass(frozen=True, slots=True)
class Layout:
    """Declarative description of one supported statement layout."""

    name: str
    detect: tuple[str, ...]
    detect_exact_case: bool
    required: Mapping[str, tuple[str, ...]]
    optional: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def matches(self, headers: Sequence[str]) -> bool:
        if self.detect_exact_case:
            present = set(headers)
            return all(h in present for h in self.detect)
        present = {h.lower() for h in headers}
        return all(h.lower() in present for h in self.detect)

    def header_for(self, field_name: str, headers: Sequence[str]) -> str | None:
        aliases = self.required.get(field_name) or self.optional.get(field_name) or ()
        return resolve_header(aliases, headers)

    def resolve_columns(self, headers: Sequence[str]) -> dict[str, str | None]:
        """Map every field to its header; raise when a required field is absent."""

        names = (*self.required, *self.optional)
        columns = {name: self.header_for(name, headers) for name in names}
        missing = [name for name in self.required if columns[name] is None]
        if missing:
            raise MissingColumnError(self.name, missing, headers)
        return columns


TRANSFER_LAYOUT = Layout(
    name="transfer",
    detect=("Source currency", "Target currency", "Direction"),
    detect_exact_case=True,
    required={
        "date": ("Created on",),
        "status": ("Status",),
        "direction": ("Direction",),
        "source_amount": ("Source amount (after fees)",),
        "source_currency": ("Source currency",),
        "target_amount": ("Target amount (after fees)",),
        "target_currency": ("Target currency",),
    },
    optional={
        "source_name": ("Source name",),
        "target_name": ("Target name",),
        "reference": ("Reference",),
    },
)

LEDGER_LAYOUT = Layout(
    name="ledger",
    detect=("date", "description", "amount"),
    detect_exact_case=False,
    required={
        "date": ("date", "transaction date"),
        "description": ("description",),
        "amount": ("amount", "value"),
    },
    optional={
        "balance": ("balance", "running balance"),
    },
)

# Detection order matters: a transfer export may also carry generic columns.
LAYOUTS: tuple[Layout, ...] = (TRANSFER_LAYOUT, LEDGER_LAYOUT)


def detect_layout(headers: Sequence[str]) -> Layout:
    for layout in LAYOUTS:
        if layout.matches(headers):
            return layout
    raise UnrecognizedFormatError(headers)


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------


def _cell(row: Mapping[str, str | None], header: str | None) -> str:
    if header is None:
        return ""
    return row.get(header) or ""


def _parse_decimal(raw: str) -> Decimal | None:
    cleaned = _AMOUNT_NOISE.sub("", raw)
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _parse_date(raw: str) -> datetime | None:
    s = raw.strip()
    if not s:
        return None
    parsed: datetime | None
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        parsed = None
        for fmt in _FALLBACK_DATE_FORMATS:
            try:
                parsed = datetime.strptime(s, fmt)
                break
            except ValueError:
                continue
    if parsed is not None and parsed.tzinfo is not None:
        # Store naive UTC so dates from both layouts compare and sort together.
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


# ---------------------------------------------------------------------------
# CSV loading
# ---------------------------------------------------------------------------


def _read_csv(raw: bytes) -> tuple[list[str], Iterator[dict[str, str | None]]]:
    text = raw.decode("utf-8-sig", errors="replace")
    reader = csv.DictReader(io.StringIO(text, newline=""))
    try:
        headers = list(reader.fieldnames or [])
    except csv.Error as exc:
        raise UnrecognizedFormatError([]) from exc
    return headers, _iter_rows(reader)


def _iter_rows(reader: csv.DictReader) -> Iterator[dict[str, str | None]]:
    # csv.DictReader already drops fully blank lines. A malformed line is
    # logged and skipped; the reader has advanced past it.
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            logger.error("CSV parsing error near line %d: %s", reader.line_num, exc)
            continue
        # Extra cells beyond the header are collected under a ``None`` key.
        yield {k: v for k, v in row.items() if k is not None}


# ---------------------------------------------------------------------------
# Row normalizers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Skip:
    """Why a row produced no record."""

    reason: str


type RowResult = NormalizedTransaction | Skip
type RowNormalizer = Callable[[Mapping[str, str | None]], RowResult]


def _ledger_row(columns: Mapping[str, str | None]) -> RowNormalizer:
    def normalize(row: Mapping[str, str | None]) -> RowResult:
        date_str = _cell(row, columns["date"])
        amount_str = _cell(row, columns["amount"])
        description = _cell(row, columns["description"])
        balance_str = _cell(row, columns["balance"])

        if not date_str or not amount_str or not description:
            return Skip("missing required fields")
        date = _parse_date(date_str)
        amount = _parse_decimal(amount_str)
        if date is None or amount is None:
            return Skip("invalid date or amount format")
        balance = _parse_decimal(balance_str) if balance_str else None
        return NormalizedTransaction(
            date=date, description=description, amount=amount, balance=balance
        )

    return normalize


def _reporting_magnitude(
    *,
    source_currency: str,
    target_currency: str,
    source_amount: str,
    target_amount: str,
    config: ExchangeRateConfig,
) -> Decimal | Skip:
    reporting = config.reporting_currency
    if source_currency == reporting and target_currency == reporting:
        raw = source_amount
    elif target_currency == reporting:
        raw = target_amount
    elif source_currency == reporting:
        raw = source_amount
    elif source_currency == config.foreign_currency:
        value = _parse_decimal(source_amount)
        if value is None:
            return Skip(f"invalid {source_currency} source amount format")
        return value * config.rate_to_reporting_currency
    else:
        return Skip(
            f"no direct {reporting} or {config.foreign_currency} source/target "
            f"({source_currency} -> {target_currency})"
        )
    value = _parse_decimal(raw)
    if value is None:
        return Skip(f"{reporting} equivalent calculation failed")
    return value


def _transfer_description(source_name: str, target_name: str, reference: str) -> str:
    if source_name and target_name:
        description = f"{source_name} -> {target_name}"
    else:
        description = source_name or target_name
    if reference:
        description += f" ({reference})"
    return description.strip() or TRANSFER_PLACEHOLDER_DESCRIPTION


def _transfer_row(columns: Mapping[str, str | None], config: ExchangeRateConfig) -> RowNormalizer:
    def normalize(row: Mapping[str, str | None]) -> RowResult:
        status = _cell(row, columns["status"]).upper()
        if status != "COMPLETED":
            return Skip(f"status is {status or '<empty>'}")

        direction = _cell(row, columns["direction"]).upper()
        source_currency = _cell(row, columns["source_currency"]).upper()
        target_currency = _cell(row, columns["target_currency"]).upper()
        date_str = _cell(row, columns["date"])
        source_amount = _cell(row, columns["source_amount"])
        target_amount = _cell(row, columns["target_amount"])
        if not all(
            (date_str, source_currency, target_currency, source_amount, target_amount, direction)
        ):
            return Skip("missing essential fields")
        date = _parse_date(date_str)
        if date is None:
            return Skip("invalid date format")

        magnitude = _reporting_magnitude(
            source_currency=source_currency,
            target_currency=target_currency,
            source_amount=source_amount,
            target_amount=target_amount,
            config=config,
        )
        if isinstance(magnitude, Skip):
            return magnitude
        # Upstream amounts may already carry a sign; only Direction decides it.
        magnitude = abs(magnitude)
        if not magnitude.is_finite():
            return Skip(f"{config.reporting_currency} equivalent is not finite")

        return NormalizedTransaction(
            date=date,
            description=_transfer_description(
                _cell(row, columns["source_name"]),
                _cell(row, columns["target_name"]),
                _cell(row, columns["reference"]),
            ),
            amount=-magnitude if direction == "OUT" else magnitude,
            balance=None,
        )

    return normalize


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SkippedRow:
    row_number: int
    reason: str


@dataclass(frozen=True, slots=True)
class NormalizationReport:
    """Records plus the rows that produced none, in source order."""

    layout: str
    records: list[NormalizedTransaction]
    skipped: list[SkippedRow]


def normalize_statement(
    raw: bytes, *, config: ExchangeRateConfig | None = None
) -> NormalizationReport:
    """Normalize a statement and report skipped rows alongside the records.

    Raises :class:`UnrecognizedFormatError` or :class:`MissingColumnError`
    before touching any row.
    """

    cfg = config or ExchangeRateConfig()
    headers, rows = _read_csv(raw)
    logger.info("Detected headers: %s", headers)
    layout = detect_layout(headers)
    columns = layout.resolve_columns(headers)
    logger.info("Detected %s format", layout.name)

    normalize_row = (
        _transfer_row(columns, cfg) if layout is TRANSFER_LAYOUT else _ledger_row(columns)
    )

    records: list[NormalizedTransaction] = []
    skipped: list[SkippedRow] = []
    # Header is row 1, so data rows are numbered from 2.
    for row_number, row in enumerate(rows, start=2):
        try:
            result = normalize_row(row)
        except Exception:
            logger.exception(
                "Error processing %s row %d. Row data: %s",
                layout.name,
                row_number,
                json.dumps(row, ensure_ascii=False),
            )
            skipped.append(SkippedRow(row_number, "unexpected error"))
            continue
        if isinstance(result, Skip):
            logger.warning("Skipping %s row %d: %s", layout.name, row_number, result.reason)
            skipped.append(SkippedRow(row_number, result.reason))
        else:
            records.append(result)

    logger.info("Finished parsing. Extracted %d valid transactions.", len(records))
    return NormalizationReport(layout=layout.name, records=records, skipped=skipped)


def normalize_transactions(
    raw: bytes, *, config: ExchangeRateConfig | None = None
) -> list[NormalizedTransaction]:
    """Parse statement bytes into normalized records ready for persistence.

    The output length never exceeds the number of data rows; rows failing
    validation are dropped (and logged), never raised.
    """

    return normalize_statement(raw, config=config).records


def date_range_of(raw: bytes) -> DateRange | None:
    """Return the min/max parseable date of a statement, or ``None``.

    Only the date column is located (other required columns are not checked).
    An undetectable layout is logged and yields ``None``; callers supply their
    own fallback.
    """

    try:
        headers, rows = _read_csv(raw)
        layout = detect_layout(headers)
    except CsvFormatError as exc:
        logger.error("Could not determine date column for date range: %s", exc)
        return None
    date_header = layout.header_for("date", headers)
    if date_header is None:
        logger.error("No date column found for %s format date range", layout.name)
        return None

    start: datetime | None = None
    end: datetime | None = None
    for row in rows:
        parsed = _parse_date(_cell(row, date_header))
        if parsed is None:
            continue
        if start is None or parsed < start:
            start = parsed
        if end is None or parsed > end:
            end = parsed
    if start is None or end is None:
        return None
    return DateRange(start_date=start.date(), end_date=end.date())


__all__ = [
    "LEDGER_LAYOUT",
    "LAYOUTS",
    "Layout",
    "NormalizationReport",
    "SkippedRow",
    "TRANSFER_LAYOUT",
    "TRANSFER_PLACEHOLDER_DESCRIPTION",
    "date_range_of",
    "detect_layout",
    "normalize_statement",
    "normalize_transactions",
    "resolve_header",
]
