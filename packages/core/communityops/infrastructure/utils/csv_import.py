"""CSV parsing and templates for bulk import."""

import csv
import io

from communityops.domain.models.system_error import ValidationFailedError

RESIDENCE_REQUIRED_COLUMNS = ("unit_number", "type", "max_occupancy", "floor_area")
RESIDENCE_OPTIONAL_COLUMNS = ("lot_area",)
RESIDENCE_TEMPLATE_COLUMNS = ("unit_number", "type", "max_occupancy", "lot_area", "floor_area")
RESIDENCE_TEMPLATE_ROWS = (
    ("101", "condo", "4", "0", "120.5"),
    ("102", "condo", "2", "0", "85.3"),
    ("201", "townhouse", "6", "150.0", "180.0"),
)


def parse_csv(
    text: str,
    required_columns: tuple[str, ...],
    optional_columns: tuple[str, ...] = (),
) -> list[dict[str, str]]:
    """Parse CSV text into one raw record per data row.

    Header names are matched case-insensitively and stripped. Columns outside
    the required and optional sets are dropped. Blank lines are skipped.

    Args:
        text: CSV content including the header row.
        required_columns: Columns that must be present in the header.
        optional_columns: Columns kept when present.

    Returns:
        List of records keyed by normalized column name, in file order.

    Raises:
        ValidationFailedError: If the file is empty or misses required columns.
    """
    if not text or not text.strip():
        raise ValidationFailedError("The file is empty", field="file")

    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    try:
        header = next(reader)
    except StopIteration:
        raise ValidationFailedError("The file is empty", field="file") from None
    except csv.Error as e:
        raise ValidationFailedError("The file is not valid CSV", field="file", technical=str(e)) from e

    columns = [name.strip().lower() for name in header]
    missing = [name for name in required_columns if name not in columns]
    if missing:
        raise ValidationFailedError(
            f"Missing required columns: {', '.join(missing)}",
            field="file",
        )

    wanted = set(required_columns) | set(optional_columns)
    records: list[dict[str, str]] = []
    try:
        for values in reader:
            if not any(value.strip() for value in values):
                continue
            record = {
                column: (values[position].strip() if position < len(values) else "")
                for position, column in enumerate(columns)
                if column in wanted
            }
            records.append(record)
    except csv.Error as e:
        raise ValidationFailedError(
            f"The file is not valid CSV (line {reader.line_num})",
            field="file",
            technical=str(e),
        ) from e
    return records


def parse_residence_csv(text: str) -> list[dict[str, str]]:
    """Parse a residence import file."""
    return parse_csv(text, RESIDENCE_REQUIRED_COLUMNS, RESIDENCE_OPTIONAL_COLUMNS)


def generate_csv_template() -> str:
    """Return the downloadable residence import template with example rows."""
    lines = [",".join(RESIDENCE_TEMPLATE_COLUMNS)]
    lines.extend(",".join(row) for row in RESIDENCE_TEMPLATE_ROWS)
    return "\n".join(lines) + "\n"
