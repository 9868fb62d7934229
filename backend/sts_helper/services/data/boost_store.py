"""Boost weight CSV store.

CSV format (one row per validator):

    validatorid,total_sts_amount,total_s_amount,weight
    13,1250.500000,1300.520000,12.5000

The source may be an http(s) URL or a local path. Malformed rows are
skipped with a warning; a source with no valid rows is an error.
"""

import csv
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional, Sequence

import httpx
import structlog

from sts_helper.core.config import get_settings
from sts_helper.services.data.errors import BoostDataError
from sts_helper.services.data.records import BoostRecord

logger = structlog.get_logger()

CSV_HEADER = ["validatorid", "total_sts_amount", "total_s_amount", "weight"]


def parse_boost_csv(text: str) -> List[BoostRecord]:
    """Parse boost CSV text, skipping malformed rows.

    Raises:
        BoostDataError: Text is empty
    """
    lines = text.strip().splitlines()
    if not lines or not lines[0].strip():
        raise BoostDataError("CSV file is empty")

    header = lines[0].strip().lower()
    if not all(column in header for column in ("validatorid", "total_sts_amount", "weight")):
        logger.warning(
            "Unexpected boost CSV header",
            expected=",".join(CSV_HEADER),
            got=lines[0].strip(),
        )

    records: List[BoostRecord] = []
    for line_no, row in enumerate(csv.reader(lines[1:]), start=2):
        if not row or not any(cell.strip() for cell in row):
            continue
        if len(row) < 4:
            logger.warning("Skipping boost CSV row with too few columns", line=line_no, row=row)
            continue

        validator_id = row[0].strip()
        if not validator_id:
            logger.warning("Skipping boost CSV row without validator id", line=line_no)
            continue

        try:
            sts_balance, s_balance, weight = (Decimal(cell.strip() or "0") for cell in row[1:4])
        except InvalidOperation:
            logger.warning("Skipping boost CSV row with invalid numbers", line=line_no, row=row)
            continue
        if not all(v.is_finite() for v in (sts_balance, s_balance, weight)):
            logger.warning("Skipping boost CSV row with invalid numbers", line=line_no, row=row)
            continue

        records.append(BoostRecord(
            validator_id=validator_id,
            sts_balance=sts_balance,
            s_balance=s_balance,
            weight=weight,
        ))

    return records


def render_boost_csv(records: Sequence[BoostRecord]) -> str:
    """Render records in the store's CSV format (6/6/4 decimal places)."""
    lines = [",".join(CSV_HEADER)]
    for r in records:
        lines.append(f"{r.validator_id},{r.sts_balance:.6f},{r.s_balance:.6f},{r.weight:.4f}")
    return "\n".join(lines)


class BoostWeightStore:
    """Loads and saves validator boost weights."""

    def __init__(self, source: Optional[str] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.source = source or settings.boost_csv_source
        self.timeout = timeout or settings.api_timeout_seconds

    @property
    def is_remote(self) -> bool:
        return self.source.startswith(("http://", "https://"))

    async def load(self) -> List[BoostRecord]:
        """Load boost records from the configured source.

        Raises:
            BoostDataError: Source unreadable, empty, or without valid rows
        """
        logger.info("Loading validator boost data", source=self.source)
        text = await (self._fetch() if self.is_remote else self._read())
        records = parse_boost_csv(text)

        if not records:
            raise BoostDataError("No valid boost weight rows found")

        total_weight = sum((r.weight for r in records), Decimal("0"))
        logger.info(
            "Loaded validator boost records",
            count=len(records),
            total_weight=f"{total_weight:.2f}",
            validators=[r.validator_id for r in records],
        )
        return records

    async def _fetch(self) -> str:
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
                response = await client.get(self.source)
        except httpx.HTTPError as e:
            raise BoostDataError(f"Failed to fetch boost CSV: {e}") from e

        if response.status_code != 200:
            raise BoostDataError(
                f"Failed to fetch boost CSV: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.text

    async def _read(self) -> str:
        try:
            return Path(self.source).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise BoostDataError(f"Failed to read boost CSV {self.source}: {e}") from e

    @staticmethod
    def save(records: Sequence[BoostRecord], path: str) -> str:
        """Write records to ``path``, creating parent directories."""
        content = render_boost_csv(records)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        Path(path).write_text(content, encoding="utf-8")
        logger.info("Boost CSV written", path=path, validators=len(records))
        return content
