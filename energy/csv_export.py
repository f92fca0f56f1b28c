"""
Excel-friendly CSV export for reports.

Files open correctly in spreadsheet software configured for a comma decimal
separator:

- UTF-8 byte order mark, then a "sep=;" line naming the delimiter
- ";" as delimiter, "\\n" line endings
- plain decimal numbers written with a comma ("15.12" -> "15,12")
- fields containing ";", '"' or line breaks are quoted, quotes doubled
"""

import csv
import io
import re
from decimal import Decimal

from django.http import HttpResponse

DELIMITER = ";"
BOM = "\ufeff"

_PLAIN_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")


def excel_normalize(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, Decimal):
        value = format(value, "f")
    text = str(value)
    if _PLAIN_NUMBER_RE.match(text):
        text = text.replace(".", ",")
    return text


def to_csv(headers, rows) -> str:
    """
    Render rows (dicts keyed by header) as delimited text.

    Args:
        headers: column names, written as the header row and used as dict keys
        rows: iterable of dicts; missing keys render as empty fields

    Returns:
        CSV text including the BOM and the "sep=" line
    """
    output = io.StringIO()
    output.write(BOM)
    output.write(f"sep={DELIMITER}\n")

    writer = csv.writer(
        output,
        delimiter=DELIMITER,
        quotechar='"',
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="\n",
    )
    writer.writerow([excel_normalize(h) for h in headers])
    for row in rows:
        writer.writerow([excel_normalize(row.get(h)) for h in headers])

    return output.getvalue()


def csv_response(filename, headers, rows) -> HttpResponse:
    response = HttpResponse(
        to_csv(headers, rows).encode("utf-8"),
        content_type="text/csv; charset=utf-8",
    )
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response
