"""Classification report writer.

Each image gets a fixed three-line record followed by a blank line:

    File: /data/white.tiff
    Predicted class: 1
    Class probabilities: 0.1 0.9 0.2

"""

from dataclasses import dataclass
from typing import TextIO

import numpy as np

from ..exceptions import SinkWriteError
from .tensors import ScoreTensor


@dataclass
class ClassificationRecord:
    """Result for one file. Built and written immediately, never kept."""

    file_id: str
    predicted_class: int
    scores: list[float]


def classify(file_id: str, scores: ScoreTensor | np.ndarray) -> ClassificationRecord:
    """Pick the top class. Ties go to the lowest index."""
    values = scores.scores if isinstance(scores, ScoreTensor) else np.asarray(scores)
    if values.size == 0:
        raise ValueError("Cannot classify an empty score vector")
    # np.argmax returns the first occurrence of the maximum
    return ClassificationRecord(
        file_id=file_id,
        predicted_class=int(np.argmax(values)),
        scores=[float(v) for v in values.reshape(-1)],
    )


def format_score(value: float) -> str:
    """Six significant digits, the way a C++ stream prints a float."""
    return f"{value:g}"


def format_record(record: ClassificationRecord) -> str:
    scores = " ".join(format_score(s) for s in record.scores)
    return (
        f"File: {record.file_id}\n"
        f"Predicted class: {record.predicted_class}\n"
        f"Class probabilities: {scores}\n"
        "\n"
    )


def report(sink: TextIO, file_id: str, scores: ScoreTensor | np.ndarray) -> ClassificationRecord:
    """Append one classification record to ``sink``.

    Raises:
        SinkWriteError: If the sink can't be written
    """
    record = classify(file_id, scores)
    _write(sink, format_record(record))
    return record


def report_error(sink: TextIO, file_id: str, message: str) -> None:
    """Append a failure record for a file that could not be classified.

    Raises:
        SinkWriteError: If the sink can't be written
    """
    # Keep the record on one line per field
    message = " ".join(message.split())
    _write(sink, f"File: {file_id}\nError: {message}\n\n")


def _write(sink: TextIO, text: str) -> None:
    try:
        sink.write(text)
        sink.flush()
    except (OSError, ValueError) as e:
        # ValueError: write to a closed file
        raise SinkWriteError(f"Failed to write report: {e}") from e
