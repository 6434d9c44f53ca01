import time
import logging
from typing import Optional

from config.scan_config import ScanConfig
from handlers.base_handler import BaseBillHandler
from handlers.restaurant_bill_handler import RestaurantBillHandler
from models.bill import ParseResult
from models.image import ProcessedImage
from ocr import BaseOCR, ProgressCallback, create_ocr_engine
from utils.background_remover import BaseSegmenter, HTTPSegmenter
from utils.image_preprocessor import ImagePreprocessor, ImageInput, PreprocessOptions
from utils.logging_config import log_with_context

logger = logging.getLogger(__name__)


class BillScanService:
    """
    Service turning bill photos into structured items using preprocessing,
    OCR and the bill parser.
    """

    def __init__(self,
                 ocr_engine: BaseOCR,
                 segmenter: Optional[BaseSegmenter] = None,
                 handler: Optional[BaseBillHandler] = None,
                 default_options: Optional[PreprocessOptions] = None):
        """
        Initialize the scan service.

        Args:
            ocr_engine: Engine converting the processed image to text
            segmenter: Collaborator for optional background removal
            handler: Bill parser, defaults to RestaurantBillHandler
            default_options: Preprocessing options used when a scan passes none
        """
        self.ocr = ocr_engine
        self.preprocessor = ImagePreprocessor(segmenter=segmenter)
        self.handler = handler or RestaurantBillHandler()
        self.default_options = default_options or PreprocessOptions()

    @classmethod
    def from_config(cls, config: Optional[ScanConfig] = None) -> 'BillScanService':
        """
        Build the service from environment configuration.

        Raises:
            ScanConfigError: If the configuration is invalid
            OCRServiceError: If the OCR engine cannot be created
        """
        config = config or ScanConfig()
        config.validate()

        ocr_engine = create_ocr_engine(
            tesseract_cmd=config.tesseract_cmd,
            language=config.ocr_language,
            timeout=config.ocr_timeout
        )

        segmenter = None
        if config.has_segmentation:
            segmenter = HTTPSegmenter(config.segmentation_endpoint, timeout=config.segmentation_timeout)
            logger.info(f"Using segmentation service at {config.segmentation_endpoint}")

        return cls(ocr_engine, segmenter=segmenter, default_options=config.default_options())

    def scan(self, image_data: ImageInput,
             options: Optional[PreprocessOptions] = None,
             on_progress: Optional[ProgressCallback] = None) -> ParseResult:
        """
        Extract items and metadata from a bill photo.

        Args:
            image_data: Raw photo in any form the preprocessor accepts
            options: Preprocessing stages to apply
            on_progress: Callback receiving OCR progress percentages

        Returns:
            ParseResult, possibly with no items

        Raises:
            ImageDecodeError: If the photo cannot be decoded
            CanvasAllocationError: If pixel buffers cannot be allocated
            OCRServiceError: If the OCR engine fails
        """
        processed = self.preprocess(image_data, options)
        return self.scan_processed(processed, on_progress)

    def preprocess(self, image_data: ImageInput,
                   options: Optional[PreprocessOptions] = None) -> ProcessedImage:
        """Run only the preprocessing stages, using the default options when none are given."""
        return self.preprocessor.preprocess(image_data, options or self.default_options)

    def scan_processed(self, processed: ProcessedImage,
                       on_progress: Optional[ProgressCallback] = None) -> ParseResult:
        """
        Run OCR on an already preprocessed image and parse the text.

        Raises:
            OCRServiceError: If the OCR engine fails
        """
        start_time = time.time()
        text = self.ocr.recognize(processed, on_progress=on_progress)
        result = self.handler.parse(text)

        log_with_context(
            logger, logging.INFO,
            f"Scanned bill: {len(result.items)} items",
            {
                'steps': processed.applied_steps,
                'size': [processed.width, processed.height],
                'text_length': len(text),
                'item_count': len(result.items),
                'processing_time': round(time.time() - start_time, 3)
            }
        )
        return result

    def parse_text(self, raw_text: str) -> ParseResult:
        """Parse OCR text directly, without an image."""
        return self.handler.parse(raw_text)
