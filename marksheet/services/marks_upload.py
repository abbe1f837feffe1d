"""Service for parsing and validating bulk marks upload files."""

import io
from typing import Any

import pandas as pd


class MarksUploadParseError(Exception):
    """Raised when file parsing fails."""

    pass


class MarksUploadValidationError(Exception):
    """Raised when file validation fails."""

    pass


REQUIRED_COLUMNS = {"admission_no", "subject_code", "marks_obtained"}

# Header spellings accepted for each canonical column
COLUMN_ALIASES = {
    "admission no": "admission_no",
    "admissionno": "admission_no",
    "subject": "subject_code",
    "subject code": "subject_code",
    "subjectcode": "subject_code",
    "marks": "marks_obtained",
    "marks obtained": "marks_obtained",
    "marksobtained": "marks_obtained",
    "max marks": "max_marks",
    "maxmarks": "max_marks",
}


def normalize_column_name(column: str) -> str:
    name = str(column).strip().lower()
    return COLUMN_ALIASES.get(name, name.replace(" ", "_"))


def parse_upload_file(file_content: bytes, filename: str) -> pd.DataFrame:
    """
    Parse Excel or CSV file and return DataFrame with normalized column names.

    Args:
        file_content: Raw file content as bytes
        filename: Original filename for type detection

    Returns:
        DataFrame with parsed data (all values as strings)

    Raises:
        MarksUploadParseError: If file cannot be parsed
    """
    try:
        file_lower = filename.lower()
        if file_lower.endswith(".xlsx"):
            # Read as strings to preserve leading zeros in admission numbers
            df = pd.read_excel(io.BytesIO(file_content), engine="openpyxl", dtype=str)
        elif file_lower.endswith(".csv"):
            df = pd.read_csv(io.BytesIO(file_content), dtype=str)
        else:
            raise MarksUploadParseError(f"Unsupported file type. Expected .xlsx or .csv, got {filename}")

        # Remove empty rows
        df = df.dropna(how="all")

        if df.empty:
            raise MarksUploadParseError("File is empty or contains no data")

        df.columns = [normalize_column_name(col) for col in df.columns]
        return df
    except pd.errors.EmptyDataError:
        raise MarksUploadParseError("File is empty or contains no data")
    except Exception as e:
        if isinstance(e, (MarksUploadParseError, MarksUploadValidationError)):
            raise
        raise MarksUploadParseError(f"Failed to parse file: {str(e)}")


def validate_required_columns(df: pd.DataFrame) -> None:
    """
    Validate that required columns exist in the DataFrame.

    Raises:
        MarksUploadValidationError: If required columns are missing
    """
    df_columns = set(df.columns)

    missing_columns = REQUIRED_COLUMNS - df_columns
    if missing_columns:
        raise MarksUploadValidationError(
            f"Missing required columns: {', '.join(sorted(missing_columns))}. "
            f"Found columns: {', '.join(sorted(df_columns))}"
        )


def parse_float_or_none(value: Any) -> float | None:
    """
    Parse a cell as a float.

    Returns None for blank cells.

    Raises:
        ValueError: If the cell is not blank and not a number
    """
    if value is None or pd.isna(value):
        return None
    value_str = str(value).strip()
    if not value_str or value_str.lower() == "nan":
        return None
    return float(value_str)


def parse_marks_row(row: pd.Series) -> dict[str, Any]:
    """
    Parse a single row into a structured marks data dict.

    Returns:
        Dictionary with parsed marks data:
        - admission_no: str
        - subject_code: str
        - marks_obtained: float | None
        - max_marks: float | None

    Raises:
        ValueError: If a numeric cell cannot be parsed
    """
    row_dict = row.to_dict()

    def parse_text(key: str) -> str:
        value = row_dict.get(key)
        if value is None or pd.isna(value):
            return ""
        return str(value).strip()

    return {
        "admission_no": parse_text("admission_no"),
        "subject_code": parse_text("subject_code"),
        "marks_obtained": parse_float_or_none(row_dict.get("marks_obtained")),
        "max_marks": parse_float_or_none(row_dict.get("max_marks")),
    }
