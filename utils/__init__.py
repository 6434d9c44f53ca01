"""Utility modules for bill scanning.

This package contains image preprocessing, background removal, the menu
vocabulary used for fuzzy name correction, and logging setup.
"""

from .food_vocabulary import (
    FOOD_VOCABULARY,
    MatchResult,
    levenshtein_distance,
    find_closest_match,
    correct_ocr_errors
)
from .image_preprocessor import ImagePreprocessor, PreprocessOptions, preprocess_image

__all__ = [
    'FOOD_VOCABULARY',
    'MatchResult',
    'levenshtein_distance',
    'find_closest_match',
    'correct_ocr_errors',
    'ImagePreprocessor',
    'PreprocessOptions',
    'preprocess_image'
]
