"""
Result sinks writing the final record set to dated files.
"""

import csv
import json
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils.exceptions import IllegalCharacterError

from labirint_parser.concurrent.models import RunResult
from labirint_parser.data.models import BookRecord
from labirint_parser.utils.errors import ExportError


TABLE_HEADERS = ["Ссылка", "Название", "ID", "Наличие", "Цена"]
IMAGE_HEADER_TEMPLATE = "Картинка_{}"


def dated_path(output_file: str, run_date: date, extension: Optional[str] = None) -> Path:
    """
    Insert the run date before the file extension.

    dated_path("out/results.json", date(2024, 5, 4)) -> out/results_2024-05-04.json
    """
    path = Path(output_file)
    suffix = extension if extension is not None else path.suffix
    return path.with_name(f"{path.stem}_{run_date.isoformat()}{suffix}")


def table_header(records: Sequence[BookRecord]) -> List[str]:
    """Fixed columns followed by one column per image link of the widest record."""
    max_image_links = max((len(record.image_links) for record in records), default=0)
    return TABLE_HEADERS + [IMAGE_HEADER_TEMPLATE.format(i + 1) for i in range(max_image_links)]


def table_row(record: BookRecord) -> List[str]:
    return [
        record.url,
        record.title,
        record.identifier,
        record.availability.value,
        record.price
    ] + list(record.image_links)


class ResultSink(ABC):
    """Persists the records of a finished run."""

    def __init__(self, output_file: str, run_date: Optional[date] = None):
        """
        Initialize sink.

        Args:
            output_file: Base output name; the run date is appended to the stem
            run_date: Date used in the file name (defaults to today)
        """
        self.output_file = output_file
        self.run_date = run_date

    def target_path(self) -> Path:
        return dated_path(self.output_file, self.run_date or date.today(), self.extension)

    @property
    def extension(self) -> Optional[str]:
        return None

    def write(self, result: RunResult) -> Path:
        """
        Write the records of result.

        Returns:
            Path of the written file

        Raises:
            ExportError: If the file cannot be written
        """
        path = self.target_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._write(path, result.records)
        except (OSError, TypeError, ValueError) as e:
            raise ExportError(
                f"Failed to write {path}",
                {"file": str(path), "error": str(e)}
            )
        return path

    @abstractmethod
    def _write(self, path: Path, records: Sequence[BookRecord]) -> None:
        pass


class JSONResultWriter(ResultSink):
    """Indented UTF-8 JSON array of records."""

    def _write(self, path: Path, records: Sequence[BookRecord]) -> None:
        data = [record.to_dict() for record in records]
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)


class CSVResultWriter(ResultSink):
    """Spreadsheet-style table, one row per record and one column per image link."""

    @property
    def extension(self) -> Optional[str]:
        return ".csv"

    def _write(self, path: Path, records: Sequence[BookRecord]) -> None:
        header = table_header(records)

        # utf-8-sig so spreadsheet applications detect the encoding
        with open(path, 'w', encoding='utf-8-sig', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(header)
            for record in records:
                writer.writerow(table_row(record))


class XLSXResultWriter(ResultSink):
    """Excel workbook with a bold header row, one row per record."""

    SHEET_TITLE = "Sheet1"

    @property
    def extension(self) -> Optional[str]:
        return ".xlsx"

    def _write(self, path: Path, records: Sequence[BookRecord]) -> None:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = self.SHEET_TITLE

        sheet.append(table_header(records))
        header_font = Font(bold=True)
        for cell in sheet[1]:
            cell.font = header_font

        for record in records:
            try:
                sheet.append(table_row(record))
            except IllegalCharacterError as e:
                raise ValueError(f"record {record.identifier} contains characters not allowed in xlsx: {e}")

        workbook.save(path)
