"""OCR module for bill processing.

This module provides the OCR engine interface used between image
preprocessing and bill parsing, and a Tesseract implementation of it.
"""

import logging
from typing import Optional, Dict, Any

from .base_ocr import BaseOCR, OCRServiceError, OCREngineType, ProgressReporter, ProgressCallback
from .tesseract_ocr import TesseractOCR

logger = logging.getLogger(__name__)


def create_ocr_engine(
    engine_type: OCREngineType = OCREngineType.TESSERACT,
    tesseract_cmd: Optional[str] = None,
    language: str = 'eng',
    timeout: Optional[float] = None
) -> BaseOCR:
    """
    Create an OCR engine.

    Args:
        engine_type: OCR engine to use
        tesseract_cmd: Path to Tesseract executable
        language: OCR language
        timeout: Seconds allowed per recognition, None for no limit

    Returns:
        Configured OCR engine

    Raises:
        OCRServiceError: If engine creation fails
    """
    if engine_type == OCREngineType.TESSERACT:
        engine = TesseractOCR(tesseract_cmd=tesseract_cmd, language=language, timeout=timeout)
        logger.info("Created Tesseract engine")
        return engine

    raise OCRServiceError(
        f"Unsupported OCR engine: {engine_type}",
        engine_type,
        {'error_type': 'engine_creation'}
    )


def get_engine_status(engine: BaseOCR) -> Dict[str, Any]:
    """Get status information about an OCR engine."""
    status = {'engine_type': engine.engine_type.value}
    if isinstance(engine, TesseractOCR):
        status.update(engine.get_debug_info())
    return status


__all__ = [
    'BaseOCR', 'OCRServiceError', 'OCREngineType', 'ProgressReporter', 'ProgressCallback',
    'TesseractOCR', 'create_ocr_engine', 'get_engine_status'
]
