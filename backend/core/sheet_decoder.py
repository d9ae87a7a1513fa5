"""SheetDecoder: spreadsheet bytes in, Dataset out.

CSV goes through ``pandas.read_csv``; XLSX/XLS through ``pandas.read_excel``
(openpyxl / xlrd). Only genuinely empty cells become missing: literal "NA",
"null" or "-" stay strings so the profiler sees what the user typed.
"""
from __future__ import annotations

import csv
import io
import logging
import os
import re
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

import pandas as pd
import requests

from core.dataset import Dataset
from core.errors import SheetDecodeError, SourceFetchError
from core.models import RowSet
from core.values import to_jsonable

logger = logging.getLogger(__name__)

URL_FETCH_TIMEOUT = int(os.getenv("URL_FETCH_TIMEOUT", "30"))

_EXCEL_EXT = ('.xlsx', '.xlsm', '.xls')
_ZIP_MAGIC = b'PK\x03\x04'
_OLE_MAGIC = b'\xd0\xcf\x11\xe0'
_GSHEET_ID = re.compile(r'/spreadsheets/d/([a-zA-Z0-9-_]+)')
_DEFAULT_IMPORT_NAME = 'imported_sheet.csv'

DEMO_FILE_NAME = 'demo_sales.csv'
DEMO_CSV = """Date,Product,Category,Sales,Customer,Satisfaction
2023-01-01,Laptop Pro,Electronics,1200,Company A,4.5
2023-01-02,Wireless Mouse,Accessories,25,John Smith,5.0
2023-01-03,4K Monitor,Electronics,450,Mary Garcia,4.0
2023-01-04,Mechanical Keyboard,Accessories,80,Peter Lopez,3.5
2023-01-05,Laptop Air,Electronics,900,Company B,4.8
2023-01-06,USB-C Hub,Accessories,40,Anna Martinez,2.0
2023-01-07,HD Webcam,Accessories,60,Charles Ruiz,4.2
2023-01-08,Laptop Pro,Electronics,1200,Company C,4.9
2023-01-09,Ergonomic Chair,Furniture,300,Laura Diaz,3.8
2023-01-10,Standing Desk,Furniture,500,Company A,4.7
"""


def synthetic_columns(width: int) -> List[str]:
    return [f"Column_{i + 1}" for i in range(width)]


class SheetDecoder:
    """Decodes CSV/XLSX bytes into a Dataset with inferred column types."""
    __slots__ = ()

    def decode(self, content: bytes, file_name: str, header_mode: bool = True,
               sheet_name: Optional[str] = None) -> Dataset:
        """Decode spreadsheet bytes.

        Args:
            content: Raw file bytes.
            file_name: Original file name; its extension picks the reader.
            header_mode: When False the first row is data and columns are
                named ``Column_1..Column_N`` after the widest row.
            sheet_name: Workbook sheet to read (first sheet when omitted).

        Raises:
            SheetDecodeError: The bytes are not a readable spreadsheet.
        """
        if not content:
            raise SheetDecodeError("The file is empty.")
        if self._is_excel(content, file_name):
            df, sheet_names, active = self._read_excel(content, header_mode, sheet_name)
        else:
            df = self._read_csv(content, header_mode)
            sheet_names, active = ['Sheet1'], 'Sheet1'

        columns = [str(c) for c in df.columns]
        df.columns = columns
        rows = [{c: to_jsonable(v) for c, v in zip(columns, rec)}
                for rec in df.itertuples(index=False, name=None)]
        logger.info(f"Decoded {file_name!r}: {len(rows)} rows x {len(columns)} columns "
                    f"(sheet={active}, header_mode={header_mode})")
        return Dataset.build(RowSet(columns=tuple(columns), rows=tuple(rows)),
                             file_name=file_name, sheet_names=sheet_names,
                             active_sheet=active, header_mode=header_mode)

    def decode_demo(self) -> Dataset:
        return self.decode(DEMO_CSV.encode('utf-8'), DEMO_FILE_NAME)

    # ── Readers ──────────────────────────────────────────────────────────

    @staticmethod
    def _is_excel(content: bytes, file_name: str) -> bool:
        if (file_name or '').lower().endswith(_EXCEL_EXT):
            return True
        return content.startswith(_ZIP_MAGIC) or content.startswith(_OLE_MAGIC)

    def _read_excel(self, content: bytes, header_mode: bool,
                    sheet_name: Optional[str]) -> Tuple[pd.DataFrame, List[str], str]:
        engine = 'xlrd' if content.startswith(_OLE_MAGIC) else 'openpyxl'
        try:
            book = pd.ExcelFile(io.BytesIO(content), engine=engine)
            sheet_names = [str(s) for s in book.sheet_names]
            if not sheet_names:
                raise SheetDecodeError("The workbook has no sheets.")
            active = sheet_name or sheet_names[0]
            if active not in sheet_names:
                raise SheetDecodeError(f"Sheet {active!r} not found. Available: {', '.join(sheet_names)}")
            df = pd.read_excel(book, sheet_name=active, header=0 if header_mode else None,
                               keep_default_na=False, na_values=[''])
        except SheetDecodeError:
            raise
        except Exception as e:
            raise SheetDecodeError(f"Could not read workbook: {e}") from e
        if not header_mode:
            df.columns = synthetic_columns(df.shape[1])
        return df, sheet_names, active

    def _read_csv(self, content: bytes, header_mode: bool) -> pd.DataFrame:
        text = self._decode_text(content)
        if not text.strip():
            raise SheetDecodeError("The file is empty.")
        sep = self._sniff_delimiter(text)
        kwargs = dict(sep=sep, keep_default_na=False, na_values=[''], skip_blank_lines=True)
        try:
            if header_mode:
                return pd.read_csv(io.StringIO(text), header=0, **kwargs)
            width = max((len(r) for r in csv.reader(io.StringIO(text), delimiter=sep)), default=0)
            return pd.read_csv(io.StringIO(text), header=None,
                               names=synthetic_columns(width), **kwargs)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
            raise SheetDecodeError(f"Could not parse CSV: {e}") from e

    @staticmethod
    def _decode_text(content: bytes) -> str:
        try:
            return content.decode('utf-8-sig')
        except UnicodeDecodeError:
            logger.info("CSV is not UTF-8; falling back to latin1")
            return content.decode('latin1')

    @staticmethod
    def _sniff_delimiter(text: str) -> str:
        sample = text[:8192]
        try:
            return csv.Sniffer().sniff(sample, delimiters=',;\t|').delimiter
        except csv.Error:
            return ','


# ── URL sources ──────────────────────────────────────────────────────────────

def export_url(url: str) -> str:
    """Rewrite a Google Sheets link to its CSV export URL; other URLs pass through."""
    if 'docs.google.com/spreadsheets' in url:
        m = _GSHEET_ID.search(url)
        if m:
            return f"https://docs.google.com/spreadsheets/d/{m.group(1)}/export?format=csv"
    return url


def _file_name_from_url(url: str) -> str:
    if 'docs.google.com/spreadsheets' in url:
        return _DEFAULT_IMPORT_NAME
    name = unquote(os.path.basename(urlparse(url).path))
    return name if '.' in name else _DEFAULT_IMPORT_NAME


def fetch_url(url: str, timeout: int = URL_FETCH_TIMEOUT) -> Tuple[bytes, str]:
    """Download a public spreadsheet. Returns ``(content, file_name)``.

    No retries: a failure is reported and the user tries again.

    Raises:
        SourceFetchError: Transport error or non-2xx response.
    """
    url = (url or '').strip()
    if not url.lower().startswith(('http://', 'https://')):
        raise SourceFetchError("Only http(s) URLs can be imported.")
    target = export_url(url)
    try:
        resp = requests.get(target, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"Fetching {target} failed: {e}")
        raise SourceFetchError(
            "Could not download the file. Make sure the link is public "
            "(for Google Sheets: Share → Anyone with the link)."
        ) from e
    return resp.content, _file_name_from_url(url)
