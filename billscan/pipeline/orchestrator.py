"""
Processing Orchestrator Module.

Drives uploaded images through the pipeline:

    upload (sync)                  pipeline run (worker thread)
    ─────────────                  ───────────────────────────────────────
    validate → store bytes →       preprocess → OCR → extract
    create record (processing)  →      ├── success → completed
    return record                      └── any failure → error
                                   always: remove the intermediate image

Uploads return as soon as the record exists; runs execute on a bounded
thread pool so a slow or failing document never blocks another one.

Usage:
    orchestrator = ProcessingOrchestrator(store)
    record = orchestrator.submit_upload("bill.jpg", "image/jpeg", data)
    orchestrator.wait_for(record.id, timeout=60)
"""

import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from config import get_config
from billscan.utils.logger import get_logger
from billscan.utils.helpers import ensure_directory, safe_filename
from billscan.utils.exceptions import BillScanError, PipelineError, PipelineTimeoutError
from billscan.input_handler import ImagePreprocessor, UploadValidator
from billscan.ocr_engine import OCREngine
from billscan.extraction import FieldExtractor, get_extractor
from billscan.records import BillingRecord, RecordStore

logger = get_logger(__name__)


class ProcessingOrchestrator:
    """
    Owns the worker pool and the per-record state machine.

    Collaborators are injectable; anything not passed is built from
    configuration. The OCR engine is created on first use so a missing
    Tesseract install fails individual runs instead of the whole service.

    Attributes:
        store: Record store shared with the API
        upload_dir: Directory holding stored uploads and intermediates
        max_workers: Concurrent pipeline runs
        timeout: Per-run deadline in seconds (None = unbounded)
        keep_uploads: Whether stored uploads survive their run
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        validator: Optional[UploadValidator] = None,
        preprocessor: Optional[ImagePreprocessor] = None,
        ocr_engine: Optional[OCREngine] = None,
        extractor: Optional[FieldExtractor] = None,
        upload_dir: Optional[str] = None,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
        keep_uploads: Optional[bool] = None
    ) -> None:
        self.store = store or RecordStore(
            default_currency=get_config("extraction.default_currency", "USD")
        )
        self.validator = validator or UploadValidator()
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.extractor = extractor or get_extractor()
        self._ocr_engine = ocr_engine
        self._ocr_lock = threading.Lock()

        self.upload_dir = ensure_directory(
            upload_dir or get_config("paths.upload_dir", "data/uploads")
        )
        self.max_workers = max_workers or get_config("pipeline.max_workers", 2)
        if timeout is None:
            timeout = get_config("pipeline.timeout_seconds", 0)
        self.timeout = timeout or None
        self.keep_uploads = keep_uploads if keep_uploads is not None else \
            get_config("pipeline.keep_uploads", True)

        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="billscan-pipeline"
        )
        self._futures: Dict[str, Future] = {}
        self._futures_lock = threading.Lock()

        logger.info(
            f"ProcessingOrchestrator initialized (workers={self.max_workers}, "
            f"timeout={self.timeout}, upload_dir={self.upload_dir})"
        )

    @property
    def ocr_engine(self) -> OCREngine:
        with self._ocr_lock:
            if self._ocr_engine is None:
                self._ocr_engine = OCREngine()
            return self._ocr_engine

    # ------------------------------------------------------------------
    # Synchronous upload path
    # ------------------------------------------------------------------

    def submit_upload(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        data: Optional[bytes]
    ) -> BillingRecord:
        """
        Accept an upload and schedule its pipeline run.

        Returns without waiting for OCR.

        Args:
            filename: Client filename.
            content_type: Declared MIME type.
            data: Raw image bytes.

        Returns:
            The new record, in ``processing`` state (``error`` if the
            worker pool has already been shut down).

        Raises:
            ValidationError: If the upload is rejected; no record is created.
            PipelineError: If the bytes could not be stored; no record is created.
        """
        upload = self.validator.validate(filename, content_type, data)

        image_path = self.upload_dir / f"{uuid.uuid4().hex}-{safe_filename(upload.filename)}"
        try:
            image_path.write_bytes(data)
        except OSError as e:
            logger.error(f"Could not store upload {upload.filename}: {e}")
            raise PipelineError("Failed to store uploaded image", {"reason": str(e)})

        record = self.store.create(upload.filename, image_path=str(image_path))

        try:
            future = self._executor.submit(self._run, record.id, image_path)
        except RuntimeError as e:
            logger.error(f"Record {record.id} not queued: {e}")
            if not self.keep_uploads:
                self._remove(image_path)
            return self._mark_failed(record.id, "Processing service is shutting down") or record

        with self._futures_lock:
            self._futures[record.id] = future
        future.add_done_callback(
            lambda done, record_id=record.id: self._forget(record_id, done)
        )

        logger.info(f"Record {record.id} queued ({upload.filename}, {upload.size} bytes)")
        return record

    def _forget(self, record_id: str, future: Future) -> None:
        with self._futures_lock:
            if self._futures.get(record_id) is future:
                del self._futures[record_id]

    # ------------------------------------------------------------------
    # Background pipeline run
    # ------------------------------------------------------------------

    def _run(self, record_id: str, image_path: Path) -> BillingRecord:
        """
        Execute one pipeline run and record its terminal state.

        Never raises: every failure becomes ``status = error``.
        """
        started = time.monotonic()
        logger.info(f"Processing record {record_id}")

        try:
            with self._intermediate(image_path) as processed_path:
                self._check_deadline(record_id, "preprocess", started)
                self.preprocessor.preprocess_file(image_path, processed_path)

                self._check_deadline(record_id, "ocr", started)
                ocr_result = self.ocr_engine.recognize(
                    processed_path, timeout=self._remaining(started)
                )

                self._check_deadline(record_id, "extract", started)
                fields = self.extractor.extract(ocr_result.text)

            record = self.store.complete(
                record_id, fields, ocr_result.text, ocr_result.confidence
            )
            logger.info(
                f"Record {record_id} completed in {time.monotonic() - started:.2f}s "
                f"(confidence {record.confidence:.2f}, {len(record.items)} items)"
            )

        except BillScanError as e:
            logger.error(f"Record {record_id} failed: {e}")
            record = self._mark_failed(record_id, e.message)

        except Exception as e:
            logger.exception(f"Unexpected error processing record {record_id}")
            record = self._mark_failed(record_id, f"Internal error: {e}")

        finally:
            if not self.keep_uploads:
                self._remove(image_path)

        return record

    def _mark_failed(self, record_id: str, reason: str) -> Optional[BillingRecord]:
        try:
            return self.store.fail(record_id, reason)
        except BillScanError as e:
            logger.error(f"Could not mark record {record_id} as failed: {e}")
            return None

    @contextmanager
    def _intermediate(self, image_path: Path) -> Iterator[Path]:
        """Yield the intermediate path and remove the file when the run ends."""
        processed_path = self.preprocessor.intermediate_path(image_path)
        try:
            yield processed_path
        finally:
            self._remove(processed_path)

    def _remaining(self, started: float) -> Optional[float]:
        if self.timeout is None:
            return None
        return max(self.timeout - (time.monotonic() - started), 0.001)

    def _check_deadline(self, record_id: str, stage: str, started: float) -> None:
        if self.timeout is not None and time.monotonic() - started >= self.timeout:
            raise PipelineTimeoutError(record_id, stage, self.timeout)

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            path.unlink()
            logger.debug(f"Removed {path.name}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")

    # ------------------------------------------------------------------
    # Waiting and shutdown
    # ------------------------------------------------------------------

    def wait_for(self, record_id: str, timeout: Optional[float] = None) -> BillingRecord:
        """
        Block until the run for ``record_id`` has finished.

        Raises:
            RecordNotFoundError: If the id is unknown.
            concurrent.futures.TimeoutError: If the run is still going.
        """
        with self._futures_lock:
            future = self._futures.get(record_id)
        if future is not None:
            future.result(timeout=timeout)
        return self.store.get(record_id)

    def wait_all(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every submitted run has finished.

        Returns:
            True if all runs finished within ``timeout``.
        """
        with self._futures_lock:
            futures = list(self._futures.values())
        _, pending = wait_futures(futures, timeout=timeout)
        return not pending

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; optionally wait for running pipelines."""
        logger.info("Shutting down processing orchestrator")
        self._executor.shutdown(wait=wait)
