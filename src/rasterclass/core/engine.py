"""Batch classification engine.

Orchestrates one run:
1. List candidate files in the input folder
2. Acquire the accelerator context and bind the backend
3. Per file: decode -> describe -> infer -> report -> release tensors
4. Close the backend, release the context, close the report

Files are processed strictly one at a time; every buffer a file allocates
is released before the next file starts.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TextIO

from ..backends.base import InferenceBackend
from ..constants import (
    DEFAULT_CLASS_COUNT,
    DEFAULT_DEVICE_INDEX,
    REPORT_ENCODING,
    TAGGED_IMAGE_EXTENSIONS,
    ErrorPolicy,
)
from ..exceptions import DecodeError, InferenceError, SinkWriteError
from ..utils.image import decode, list_candidates
from .context import AcceleratorContext, acquire
from .descriptors import describe_input, describe_output
from .invoker import InferenceInvoker
from .reporter import ClassificationRecord, report, report_error

logger = logging.getLogger(__name__)


@dataclass
class FileOutcome:
    """What happened to one file."""

    path: Path
    record: ClassificationRecord | None = None
    error: str | None = None
    inference_time_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchSummary:
    """Totals for one run."""

    candidates: int = 0
    processed: int = 0
    failed: int = 0
    errors: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


class ClassificationEngine:
    """Classify every tagged image in a folder into a text report.

    Example:
        >>> engine = ClassificationEngine(RandomBackend(seed=0), class_count=10)
        >>> summary = engine.run(Path("images"), Path("report.txt"))
        >>> summary.processed
        3
    """

    def __init__(
        self,
        backend: InferenceBackend,
        class_count: int = DEFAULT_CLASS_COUNT,
        device_index: int = DEFAULT_DEVICE_INDEX,
        require_accelerator: bool = True,
        on_error: ErrorPolicy | str = ErrorPolicy.ABORT,
        extensions: Iterable[str] = TAGGED_IMAGE_EXTENSIONS,
        case_sensitive: bool = True,
    ):
        """Initialize the engine.

        Args:
            backend: Inference backend (bound to the context at run time)
            class_count: Number of classes, fixed for the run
            device_index: Accelerator to use
            require_accelerator: If False, run on the CPU when no
                accelerator is present
            on_error: "abort" stops at the first failing file, "continue"
                writes an error record and goes on
            extensions: Tagged-image suffixes to process
            case_sensitive: Suffix matching mode
        """
        if class_count < 1:
            raise ValueError(f"class_count must be positive, got {class_count}")

        self._invoker = InferenceInvoker(backend)
        self.class_count = class_count
        self.device_index = device_index
        self.require_accelerator = require_accelerator
        self.on_error = ErrorPolicy(on_error)
        self.extensions = tuple(extensions)
        self.case_sensitive = case_sensitive
        self._last_context: AcceleratorContext | None = None

    @property
    def backend(self) -> InferenceBackend:
        return self._invoker.backend

    @property
    def last_context(self) -> AcceleratorContext | None:
        """Context of the most recent run (released once the run ends)."""
        return self._last_context

    def candidates(self, input_folder: Path) -> list[Path]:
        """Files in ``input_folder`` this engine would classify."""
        return list_candidates(input_folder, self.extensions, self.case_sensitive)

    def run(
        self,
        input_folder: Path,
        output_file: Path,
        on_progress: Callable[[Path, FileOutcome], None] | None = None,
    ) -> BatchSummary:
        """Classify every candidate in ``input_folder``.

        Args:
            input_folder: Directory to scan (not recursive)
            output_file: Report path, truncated at the start of the run
            on_progress: Optional callback after each file

        Returns:
            BatchSummary

        Raises:
            InputError: If the input folder is missing
            DeviceUnavailable: If no accelerator can be acquired
            BackendError: If the backend can't be bound
            DecodeError, InferenceError: On the first failing file when
                ``on_error`` is "abort"; the report keeps earlier records
            SinkWriteError: If the report can't be written
        """
        paths = self.candidates(Path(input_folder))
        summary = BatchSummary(candidates=len(paths))
        logger.info("Found %d candidate image(s) in %s", len(paths), input_folder)

        with acquire(self.device_index, self.require_accelerator) as ctx:
            self._last_context = ctx
            try:
                self.backend.bind(ctx)
                with _open_sink(Path(output_file)) as sink:
                    for path in paths:
                        outcome = self._process(ctx, sink, path)
                        if outcome.ok:
                            summary.processed += 1
                        else:
                            summary.failed += 1
                            summary.errors.append((path, outcome.error))

                        if on_progress:
                            on_progress(path, outcome)
            finally:
                self.backend.close()

        logger.info(
            "Classified %d of %d image(s), %d failed",
            summary.processed,
            summary.candidates,
            summary.failed,
        )
        return summary

    def _process(self, ctx: AcceleratorContext, sink: TextIO, path: Path) -> FileOutcome:
        """Run one file through the pipeline."""
        file_id = str(path)
        try:
            return self._classify_file(ctx, sink, path, file_id)
        except (DecodeError, InferenceError) as e:
            if self.on_error is ErrorPolicy.ABORT:
                raise
            logger.exception("Failed to classify %s", path)
            report_error(sink, file_id, str(e))
            return FileOutcome(path=path, error=str(e))

    def _classify_file(
        self, ctx: AcceleratorContext, sink: TextIO, path: Path, file_id: str
    ) -> FileOutcome:
        with decode(path, ctx) as image:
            input_desc = describe_input(ctx, image.height, image.width)
            output_desc = describe_output(ctx, self.class_count)
            with self._invoker.infer(
                ctx, image, input_desc, output_desc, self.class_count
            ) as scores:
                # Input is consumed; release it before writing
                image.release()
                record = report(sink, file_id, scores)
                elapsed = scores.inference_time_ms

        logger.debug("%s -> class %d (%.2f ms)", path.name, record.predicted_class, elapsed)
        return FileOutcome(path=path, record=record, inference_time_ms=elapsed)


def _open_sink(path: Path) -> TextIO:
    """Open the report for writing.

    Raises:
        SinkWriteError: If the file can't be created
    """
    try:
        return open(path, "w", encoding=REPORT_ENCODING, newline="\n")
    except OSError as e:
        raise SinkWriteError(f"Cannot open report {path}: {e}") from e
