"""Pipeline coordinator: validate, fingerprint, transform, name, commit or roll back"""

import logging
import threading
import time
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Dict, Optional, Union

from PIL import Image

from image_processor import DecodedImage, compute_content_hash, decode_image, get_image_metadata
from managers.asset_namer import make_disambiguator, name_for
from managers.asset_store import AssetStore
from managers.derivative_generator import DerivativeError, DerivativeGenerator
from managers.upload_validator import validate_upload
from models.asset import AssetStatus, MediaAsset, RejectionReason, VariantFile
from models.config import KIND_ORIGINAL, PipelineConfig, UploadPolicy, VariantSpec
from models.upload import RawUpload

logger = logging.getLogger("MediaServer")

# How often the coordinator re-checks cancellation while waiting on workers
POLL_INTERVAL_SECONDS = 0.05


class PipelineError(Exception):
    """Raised inside an invocation to force the failure path"""


class PipelineCoordinator:
    """Runs uploads through the pipeline with an all-or-nothing commit policy.

    Invocations share nothing but the store's directory tree, and each one
    writes only files named with its own disambiguator, so concurrent calls
    to ``process`` need no locking.
    """

    def __init__(
        self,
        store: AssetStore,
        config: Optional[PipelineConfig] = None,
        policy: Optional[UploadPolicy] = None,
        generator: Optional[DerivativeGenerator] = None
    ):
        self.store = store
        self.config = config or PipelineConfig()
        self.policy = policy or UploadPolicy()
        self.generator = generator or DerivativeGenerator()
        self.store.ensure_layout()
        logger.info(f"Initialized PipelineCoordinator with asset root {store.root}")

    def process(
        self,
        upload: RawUpload,
        config: Optional[PipelineConfig] = None,
        policy: Optional[UploadPolicy] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> MediaAsset:
        """Process one upload end to end.

        The returned asset is either committed with every expected variant on
        disk, or failed with none of its files left behind. The upload's temp
        file is removed in both cases.

        Args:
            upload: Descriptor from the intake collaborator
            config: Per-call pipeline configuration (defaults to the coordinator's)
            policy: Per-call upload policy (defaults to the coordinator's)
            cancel_event: Set by the caller to abandon the invocation

        Raises:
            BaseException: Only non-Exception interrupts (e.g. KeyboardInterrupt),
                after the same cleanup as a failure
        """
        config = config or self.config
        policy = policy or self.policy
        asset = MediaAsset(
            id=str(uuid.uuid4()),
            status=AssetStatus.PENDING,
            created_at=datetime.now(),
            original_filename=upload.original_filename,
            disambiguator=make_disambiguator(),
        )
        logger.info(f"Asset {asset.id} pending for upload '{upload.original_filename}'")

        try:
            rejection = validate_upload(upload, policy)
            if rejection:
                asset.fail(error=f"Upload rejected: {rejection.value}", rejection=rejection)
                logger.warning(f"Asset {asset.id} failed validation: {rejection.value}")
                return asset

            asset.status = AssetStatus.PROCESSING
            logger.info(f"Asset {asset.id} processing (token {asset.disambiguator})")

            try:
                decoded = decode_image(upload.temp_path)
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                self._rollback(asset, f"Failed to decode upload: {e}", RejectionReason.UNDECODABLE)
                return asset

            try:
                variants, content_hash = self._run_jobs(asset, upload, decoded, config, cancel_event)
            except Exception as e:
                self._rollback(asset, str(e))
                return asset

            asset.content_hash = content_hash
            asset.source_metadata = get_image_metadata(decoded)
            asset.commit(variants)
            logger.info(
                f"Asset {asset.id} committed: {len(variants)} variants, hash={content_hash}, "
                f"source={decoded.image.width}x{decoded.image.height} {decoded.format}"
            )
            return asset
        except BaseException:
            if asset.status != AssetStatus.COMMITTED:
                self._rollback(asset, "Invocation interrupted")
            raise
        finally:
            self.store.discard_source(upload.temp_path)

    def cleanup(self, asset: MediaAsset) -> int:
        """Remove every file of a failed invocation. Safe to call repeatedly.

        Raises:
            ValueError: If the asset is committed
        """
        if asset.is_committed:
            raise ValueError(f"Refusing to clean up committed asset {asset.id}")
        return self.store.remove_invocation(asset.disambiguator)

    def _rollback(self, asset: MediaAsset, error: str, rejection: Optional[RejectionReason] = None):
        removed = self.store.remove_invocation(asset.disambiguator)
        asset.fail(error=error, rejection=rejection)
        logger.warning(f"Asset {asset.id} failed: {error} (removed {removed} file(s))")

    def _run_jobs(
        self,
        asset: MediaAsset,
        upload: RawUpload,
        decoded: DecodedImage,
        config: PipelineConfig,
        cancel_event: Optional[threading.Event]
    ):
        specs = config.variant_specs()
        source_bytes = upload.temp_path.read_bytes() if KIND_ORIGINAL in config.variants_enabled else None
        deadline = time.monotonic() + config.timeout_seconds if config.timeout_seconds else None
        abort = threading.Event()

        executor = ThreadPoolExecutor(
            max_workers=min(config.max_workers, len(specs) + 1),
            thread_name_prefix=f"media-{asset.id[:8]}",
        )
        try:
            hash_future = executor.submit(compute_content_hash, decoded.image)
            variant_futures: Dict[Future, VariantSpec] = {
                executor.submit(self._produce_variant, asset, decoded, spec, config, source_bytes, abort): spec
                for spec in specs
            }
            pending = set(variant_futures) | {hash_future}
            variants: Dict[str, VariantFile] = {}

            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    raise PipelineError("Invocation cancelled by caller")
                wait_timeout = POLL_INTERVAL_SECONDS if cancel_event is not None else None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise PipelineError(f"Invocation exceeded timeout of {config.timeout_seconds}s")
                    wait_timeout = min(wait_timeout, remaining) if wait_timeout else remaining

                done, pending = wait(pending, timeout=wait_timeout, return_when=FIRST_COMPLETED)
                for future in done:
                    if future is hash_future:
                        if future.exception() is not None:
                            raise PipelineError(f"Content hash failed: {future.exception()}")
                        continue
                    result = future.result()
                    if isinstance(result, DerivativeError):
                        raise PipelineError(str(result))
                    variants[result.key] = result

            missing = config.expected_variant_keys() - set(variants)
            if missing:
                raise PipelineError(f"Missing variants after processing: {sorted(missing)}")
            return variants, hash_future.result()
        except BaseException:
            abort.set()
            raise
        finally:
            # Running jobs see `abort` and skip their write; waiting here means
            # rollback only starts once no worker can still create a file.
            executor.shutdown(wait=True, cancel_futures=True)

    def _produce_variant(
        self,
        asset: MediaAsset,
        decoded: DecodedImage,
        spec: VariantSpec,
        config: PipelineConfig,
        source_bytes: Optional[bytes],
        abort: threading.Event
    ) -> Union[VariantFile, DerivativeError]:
        if abort.is_set():
            return DerivativeError(key=spec.key, message="Invocation aborted")

        encoded = self.generator.generate(decoded, spec, config, source_bytes=source_bytes)
        if isinstance(encoded, DerivativeError):
            return encoded
        if abort.is_set():
            return DerivativeError(key=spec.key, message="Invocation aborted before write")

        filename = name_for(asset.original_filename, spec.key, asset.disambiguator, encoded.extension)
        self.store.write_variant(spec.kind, filename, encoded.data)
        return VariantFile(
            key=spec.key,
            kind=spec.kind,
            filename=filename,
            width=encoded.width,
            height=encoded.height,
            format=encoded.format,
            mime_type=encoded.mime_type,
            bytes_size=len(encoded.data),
            breakpoint=encoded.breakpoint,
        )
