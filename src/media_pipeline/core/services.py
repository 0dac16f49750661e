"""The manifest-generation workflow: the pipeline's only public entry point."""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from PIL import Image

from ..processors import (
    asyncio_process_batch,
    multithread_process_batch,
    serial_process_batch,
)
from .catalog import ORIGINAL_PRESET, OutputFormat, SizePreset, select_presets
from .compression import CompressionSearch
from .config import PipelineConfig
from .exceptions import (
    MediaPipelineError,
    StorageError,
    ValidationError,
    error_boundary,
)
from .metadata import MetadataExtractor
from .models import (
    DecodedMetadata,
    EncodedImage,
    Manifest,
    ManifestOptions,
    OriginalInfo,
    SourceAsset,
    Variant,
)
from .observability import LogContext, MetricsCollector, StructuredLogger, timed_operation
from .protocols import LoggerProtocol, VariantStore
from .storage import StorageManager, StorageStats
from .transcoder import VariantTranscoder
from .validation import UploadValidator

RESPONSIVE = "responsive"
BUDGETED = "budgeted"


@dataclass(frozen=True)
class VariantJob:
    """One (preset x format) unit of fan-out work."""

    preset: SizePreset
    format: OutputFormat
    target_bytes: Optional[int] = None
    is_primary: bool = False

    @property
    def label(self) -> str:
        return f"{self.preset.name}/{self.format.value}"


@dataclass
class StagedVariant:
    """A finished encode sitting in the staging directory."""

    job: VariantJob
    image: EncodedImage
    staged_path: Path
    within_budget: Optional[bool] = None


@dataclass
class PreparedUpload:
    """Everything known about an upload once it has been validated and decoded."""

    asset: SourceAsset
    category: str
    metadata: DecodedMetadata
    image: Image.Image
    jobs: List[VariantJob]
    mode: str
    context: LogContext
    start_time: float = field(default_factory=time.time)


class MediaPipeline:
    """
    Turn one uploaded image into a manifest of persisted variants.

    Each instance owns its configuration and a bounded worker pool shared by
    every invocation, so concurrent uploads cannot oversubscribe the CPU.
    Use it as a context manager or call ``close()`` to release the pool.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
        storage: Optional[VariantStore] = None,
    ):
        self.config = config or PipelineConfig()
        self._logger: LoggerProtocol = logger or StructuredLogger(
            "media-pipeline.pipeline"
        )
        self._metrics = metrics_collector

        self.extractor = MetadataExtractor(
            self.config.strict_content_type, self.config.max_pixels
        )
        self.transcoder = VariantTranscoder(
            self.config.encode_profiles, self.config.background
        )
        self.compression = CompressionSearch(
            self.transcoder, **self.config.compression.model_dump()
        )
        self.storage: VariantStore = storage or StorageManager(
            uploads_dir=self.config.uploads_dir,
            categories={
                name: settings.directory
                for name, settings in self.config.categories.items()
            },
            url_prefix=self.config.url_prefix,
            temp_dir=self.config.temp_dir,
        )

        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    # -- lifecycle -----------------------------------------------------

    @property
    def executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.config.max_workers,
                    thread_name_prefix="media-variant",
                )
            return self._executor

    def close(self) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def __enter__(self) -> "MediaPipeline":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -- public API ----------------------------------------------------

    def generate_manifest(
        self,
        asset: SourceAsset,
        category: str,
        options: Optional[ManifestOptions] = None,
    ) -> Manifest:
        """
        Validate, decode, fan out and persist; return the manifest.

        Raises:
            ValidationError: the upload breaks size/type/extension rules.
            DecodeError: the content is not a decodable, supported image.
            EncodeError: a preset x format combination failed to encode.
            StorageError: a directory or file could not be written.
        """
        context = self._new_context(asset, category)
        try:
            with error_boundary(MediaPipelineError, "Manifest generation failed"):
                prepared = self._prepare(asset, category, options, context)
                staging_dir = self.storage.create_staging_dir()
                cancel_event = threading.Event()
                worker = partial(self._run_job, prepared, staging_dir, cancel_event)

                if self.config.fanout == "serial":
                    staged = serial_process_batch(prepared.jobs, worker, cancel_event)
                else:
                    staged = multithread_process_batch(
                        prepared.jobs,
                        worker,
                        executor=self.executor,
                        cancel_event=cancel_event,
                    )
                return self._finalize(prepared, staging_dir, staged)
        except MediaPipelineError as exc:
            self._log_failure(exc, context)
            raise

    async def generate_manifest_async(
        self,
        asset: SourceAsset,
        category: str,
        options: Optional[ManifestOptions] = None,
    ) -> Manifest:
        """
        Coroutine version of ``generate_manifest``.

        Decoding and encoding run on the pipeline's pool so the event loop
        keeps serving other requests. If the awaiting task is cancelled the
        invocation's staged files are deleted before the cancellation
        propagates.
        """
        loop = asyncio.get_running_loop()
        context = self._new_context(asset, category)
        staging_dir: Optional[Path] = None
        try:
            with error_boundary(MediaPipelineError, "Manifest generation failed"):
                prepared = await loop.run_in_executor(
                    self.executor, self._prepare, asset, category, options, context
                )
                staging_dir = self.storage.create_staging_dir()
                cancel_event = threading.Event()
                worker = partial(self._run_job, prepared, staging_dir, cancel_event)
                staged = await asyncio_process_batch(
                    prepared.jobs, worker, self.executor, cancel_event
                )
                return self._finalize(prepared, staging_dir, staged)
        except asyncio.CancelledError:
            self._logger.warning("Manifest generation cancelled", context)
            if staging_dir is not None:
                self.storage.discard_staging(staging_dir)
            raise
        except MediaPipelineError as exc:
            self._log_failure(exc, context)
            raise

    def convert_formats(
        self, asset: SourceAsset, formats: Iterable[str]
    ) -> Dict[OutputFormat, EncodedImage]:
        """Encode the upload at native size into each format, in memory only."""
        UploadValidator(self.config.max_file_size).check(asset)
        self.extractor.inspect(asset)
        image = self.extractor.decode(asset.data)
        return self.transcoder.convert(image, asset.received_bytes, formats)

    def cleanup(self, older_than_hours: Optional[float] = None) -> int:
        """Sweep the temp area; returns the number of files removed."""
        hours = (
            self.config.temp_max_age_hours
            if older_than_hours is None
            else older_than_hours
        )
        return self.storage.cleanup_temp_files(hours)

    def storage_stats(self) -> StorageStats:
        if not isinstance(self.storage, StorageManager):
            raise StorageError("Storage statistics need a filesystem store")
        return self.storage.get_storage_stats()

    # -- workflow steps ------------------------------------------------

    def _new_context(self, asset: SourceAsset, category: str) -> LogContext:
        return LogContext(component="media_pipeline").with_metadata(
            category=category, filename=getattr(asset, "filename", None)
        )

    def _prepare(
        self,
        asset: SourceAsset,
        category: str,
        options: Optional[ManifestOptions],
        context: LogContext,
    ) -> PreparedUpload:
        options = options or ManifestOptions()
        start_time = time.time()

        with timed_operation("validate", self._metrics):
            if category not in self.config.categories:
                raise ValidationError([f"Unknown category: {category}"])
            validator = UploadValidator(self.config.max_file_size_for(category))
            validator.check(asset)

        with timed_operation("decode", self._metrics):
            metadata = self.extractor.inspect(asset)
            image = self.extractor.decode(asset.data)

        self._logger.debug(
            "Decoded upload",
            context.with_operation("decode"),
            width=metadata.width,
            height=metadata.height,
            format=metadata.format,
        )

        budget = options.target_bytes(self.config.categories[category].target_size_kb)
        if budget is not None:
            jobs = self._plan_budgeted(options, budget)
            mode = BUDGETED
        else:
            jobs = self._plan_responsive(options)
            mode = RESPONSIVE

        return PreparedUpload(
            asset=asset,
            category=category,
            metadata=metadata,
            image=image,
            jobs=jobs,
            mode=mode,
            context=context.with_metadata(mode=mode, jobs=len(jobs)),
            start_time=start_time,
        )

    def _plan_responsive(self, options: ManifestOptions) -> List[VariantJob]:
        formats = options.formats or self.config.delivery_formats
        jobs = [
            VariantJob(preset=preset, format=fmt)
            for preset in select_presets(self.config.presets, options.presets)
            if preset.name != ORIGINAL_PRESET
            for fmt in formats
        ]
        if options.include_original:
            jobs.append(
                VariantJob(
                    preset=SizePreset(name=ORIGINAL_PRESET),
                    format=formats[0],
                    is_primary=True,
                )
            )
        return jobs

    def _plan_budgeted(
        self, options: ManifestOptions, target_bytes: int
    ) -> List[VariantJob]:
        fmt = options.budget_format or self.config.delivery_formats[0]
        presets = select_presets(self.config.size_presets, options.budget_presets)
        return [
            VariantJob(
                preset=preset, format=fmt, target_bytes=target_bytes, is_primary=i == 0
            )
            for i, preset in enumerate(presets)
        ]

    def _run_job(
        self,
        prepared: PreparedUpload,
        staging_dir: Path,
        cancel_event: threading.Event,
        job: VariantJob,
    ) -> Optional[StagedVariant]:
        """Encode one variant and stage it. Runs on a worker thread."""
        if cancel_event.is_set():
            return None

        source_bytes = prepared.asset.received_bytes
        within_budget: Optional[bool] = None
        with timed_operation(
            "transcode", self._metrics, preset=job.preset.name, format=job.format.value
        ):
            if job.target_bytes is not None:
                result = self.compression.search(
                    prepared.image, source_bytes, job.target_bytes, job.preset, job.format
                )
                encoded = result.image
                within_budget = result.within_budget
            else:
                encoded = self.transcoder.transcode(
                    prepared.image, source_bytes, job.preset, job.format
                )

        if cancel_event.is_set():
            return None

        filename = self.storage.generate_filename(
            prepared.asset.filename, job.preset.name, job.format
        )
        with timed_operation("stage", self._metrics, filename=filename):
            staged_path = self.storage.stage(staging_dir, filename, encoded.data)

        self._logger.debug(
            "Staged variant",
            prepared.context.with_operation("transcode"),
            variant=job.label,
            width=encoded.width,
            height=encoded.height,
            bytes=encoded.byte_length,
        )
        return StagedVariant(
            job=job, image=encoded, staged_path=staged_path, within_budget=within_budget
        )

    def _finalize(
        self,
        prepared: PreparedUpload,
        staging_dir: Path,
        staged: List[Optional[StagedVariant]],
    ) -> Manifest:
        """Promote every staged file and assemble the manifest."""
        promoted: List[str] = []
        variants: List[Variant] = []
        try:
            for item in staged:
                if item is None:
                    raise StorageError("Variant generation was abandoned")
                stored = self.storage.promote(item.staged_path, prepared.category)
                promoted.append(stored.relative_path)
                variants.append(
                    Variant(
                        preset=item.job.preset.name,
                        format=item.job.format,
                        filename=stored.filename,
                        path=stored.relative_path,
                        url=stored.url,
                        width=item.image.width,
                        height=item.image.height,
                        byte_length=item.image.byte_length,
                        compression_ratio=item.image.compression_ratio,
                        quality=item.image.quality,
                        is_primary=item.job.is_primary,
                        target_bytes=item.job.target_bytes,
                        within_budget=item.within_budget,
                    )
                )
        except StorageError:
            if promoted:
                self._logger.error(
                    "Promotion failed after some variants were published; "
                    "they are no longer referenced",
                    prepared.context.with_operation("promote"),
                    orphaned=",".join(promoted),
                )
            raise

        self.storage.discard_staging(staging_dir)

        metadata = prepared.metadata
        manifest = Manifest(
            category=prepared.category,
            mode=prepared.mode,
            original=OriginalInfo(
                filename=prepared.asset.filename,
                mime_type=prepared.asset.mime_type,
                byte_length=prepared.asset.received_bytes,
                width=metadata.width,
                height=metadata.height,
                format=metadata.format,
                has_alpha=metadata.has_alpha,
                orientation=metadata.orientation,
            ),
            variants=variants,
            processing_time=time.time() - prepared.start_time,
        )

        saved = sum(
            max(0, prepared.asset.received_bytes - v.byte_length) for v in variants
        )
        self._logger.info(
            "Generated manifest",
            prepared.context.with_operation("generate_manifest"),
            variants=len(variants),
            saved_kb=f"{saved / 1024:.2f}",
            processing_time_ms=f"{manifest.processing_time * 1000:.0f}",
        )
        return manifest

    def _log_failure(self, exc: MediaPipelineError, context: LogContext) -> None:
        kind = "client" if exc.client_error else "server"
        failure_context = context.with_operation("generate_manifest").with_metadata(
            error=type(exc).__name__, kind=kind, **exc.details()
        )
        if exc.client_error:
            self._logger.warning(f"Upload rejected: {exc}", failure_context)
        else:
            self._logger.error(f"Manifest generation failed: {exc}", failure_context)
