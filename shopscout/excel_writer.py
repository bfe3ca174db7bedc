from __future__ import annotations

import os
from typing import Iterable, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from .types import Candidate


DEFAULT_HEADERS = [
    "Name",
    "Price",
    "Currency",
    "Link",
    "Image",
    "Description",
    "Source",
]


def _ensure_sheet(wb_path: Optional[str]) -> tuple[Workbook, Worksheet]:
    if wb_path and os.path.exists(wb_path):
        wb = load_workbook(wb_path)
        return wb, wb.active
    wb = Workbook()
    return wb, wb.active


def write_candidates_to_excel(
    candidates: Iterable[Candidate],
    out_path: str,
    template_path: Optional[str] = None,
    headers: Optional[list[str]] = None,
) -> None:
    headers = headers or DEFAULT_HEADERS

    # A template is only read; the result always goes to out_path
    wb, ws = _ensure_sheet(template_path)

    if ws.max_row == 1 and ws.max_column == 1 and ws.cell(row=1, column=1).value is None:
        for col_idx, title in enumerate(headers, start=1):
            ws.cell(row=1, column=col_idx).value = title

    start_row = ws.max_row + 1
    for idx, c in enumerate(candidates, start=start_row):
        ws.cell(row=idx, column=1).value = c.name
        ws.cell(row=idx, column=2).value = c.price
        ws.cell(row=idx, column=3).value = c.currency
        ws.cell(row=idx, column=4).value = c.url
        ws.cell(row=idx, column=5).value = c.image_url
        ws.cell(row=idx, column=6).value = c.description
        ws.cell(row=idx, column=7).value = c.origin.value

    wb.save(out_path)
