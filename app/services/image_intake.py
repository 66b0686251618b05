import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence
from app.core.config import EngineConfig
from app.core.exceptions import AnalysisError
from app.core.logging_config import logger
from app.schemas.onboarding import (
    AnalyzedImage,
    Dimensions,
    ImageAnalysisResponse,
    ImageCategory,
    ImageRecord,
)
from app.schemas.quality import QualityCheckResult
from app.services.quality_engine.image_analyzer import (
    analysis_failure,
    analyze_image,
    decode_image,
)


class ImageUpload:
    """One uploaded file waiting for analysis."""

    def __init__(self, filename: str, data: bytes, category: ImageCategory, tags: Optional[List[str]] = None):
        self.filename = filename
        self.data = data
        self.category = category
        self.tags = tags or []


class ImageIntakeService:
    """
    Turns uploaded image bytes into analysed ImageRecords.

    Each image is decoded and scored independently on a thread pool; a bad
    file yields a zero-score record and never aborts its siblings.
    """

    def __init__(self, config: EngineConfig, url_prefix: str = "uploads"):
        self.config = config
        self.url_prefix = url_prefix.rstrip("/")

    def analyze_upload(self, upload: ImageUpload) -> AnalyzedImage:
        """
        Decode and score a single upload.

        Args:
            upload: File name, bytes and target category

        Returns:
            AnalyzedImage with the record ready to submit in the images step
        """
        image_id = uuid.uuid4().hex
        dimensions = None
        try:
            stats = decode_image(upload.data)
        except AnalysisError as e:
            logger.warning(f"Could not decode {upload.filename}: {e.message}")
            analysis = analysis_failure()
        else:
            analysis = analyze_image(stats, self.config)
            dimensions = Dimensions(width=stats.width, height=stats.height)

        return self._build(upload, image_id, analysis, dimensions)

    def _build(
        self,
        upload: ImageUpload,
        image_id: str,
        analysis: QualityCheckResult,
        dimensions: Optional[Dimensions],
    ) -> AnalyzedImage:
        record = ImageRecord(
            id=image_id,
            category=upload.category,
            url=f"{self.url_prefix}/{image_id}/{upload.filename}",
            quality_score=analysis.score,
            dimensions=dimensions,
            issues=analysis.issues,
            tags=upload.tags,
        )
        return AnalyzedImage(filename=upload.filename, record=record, analysis=analysis)

    def process_uploads(self, uploads: Sequence[ImageUpload], max_workers: Optional[int] = None) -> ImageAnalysisResponse:
        """
        Analyse a batch of uploads concurrently.

        Args:
            uploads: Uploaded files
            max_workers: Thread pool size (defaults to the configured worker count)

        Returns:
            ImageAnalysisResponse with one entry per upload, in input order
        """
        if not uploads:
            return ImageAnalysisResponse()

        workers = max_workers or self.config.image_analysis_workers
        logger.info(f"Starting image analysis for {len(uploads)} uploads with {workers} workers")

        results = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_index = {
                executor.submit(self.analyze_upload, upload): idx
                for idx, upload in enumerate(uploads)
            }

            for future in as_completed(future_to_index):
                idx = future_to_index[future]
                try:
                    results[idx] = future.result()
                except Exception as e:
                    logger.error(f"Error analysing image at index {idx}: {str(e)}")
                    results[idx] = self._build(uploads[idx], uuid.uuid4().hex, analysis_failure(), None)

        # Return results in original order
        images = [results[i] for i in range(len(uploads))]
        passed = sum(1 for image in images if image.analysis.passed)
        logger.info(f"Analysed {len(images)} images: {passed} passed, {len(images) - passed} failed")
        return ImageAnalysisResponse(images=images, passed_count=passed, failed_count=len(images) - passed)
