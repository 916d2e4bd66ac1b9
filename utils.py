from typing import Any, Iterable, List, Mapping, Union
import csv
import io
import os

from newton import IterationRecord

CSV_FIELDS: List[str] = ["n", "x", "fx", "f_prime_x", "tangent_slope", "tangent_intercept", "prev_x"]


def _as_row(record: Union[IterationRecord, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(record, IterationRecord):
        return record._asdict()
    return record


def iterations_to_csv_string(iterations: Iterable[Union[IterationRecord, Mapping[str, Any]]]) -> str:
    """
    Convert an iteration history to a CSV string.
    Columns are: n, x, fx, f_prime_x, tangent_slope, tangent_intercept, prev_x
    """
    rows = [_as_row(r) for r in iterations]
    if not rows:
        return ""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_FIELDS, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        # record 0 has no prev_x
        writer.writerow({k: ("" if row.get(k) is None else row.get(k)) for k in CSV_FIELDS})
    return buf.getvalue()


def save_iterations_to_csv(iterations: Iterable[Union[IterationRecord, Mapping[str, Any]]], filepath: str) -> None:
    """
    Save an iteration history to a CSV file at filepath. Overwrites if exists.
    """
    csv_text = iterations_to_csv_string(iterations)
    with open(filepath, "w", newline="", encoding="utf-8") as f:
        f.write(csv_text)


def ensure_dir_for_file(path: str) -> None:
    d = os.path.dirname(path)
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


def pretty_format_number(x: Any, digits: int = 8) -> str:
    """
    Format a number for display with `digits` significant digits.
    None becomes an empty string.
    """
    if x is None:
        return ""
    try:
        return f"{x:.{digits}g}"
    except (TypeError, ValueError):
        return str(x)
