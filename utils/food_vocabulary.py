"""Reference vocabulary of menu items and fuzzy matching for OCR'd dish names."""

import re
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

# Common food items found on Indian restaurant bills. Order matters: when two
# entries are equally close to a query, the one declared first wins.
FOOD_VOCABULARY: Tuple[str, ...] = (
    # North Indian
    'Paneer Butter Masala', 'Butter Chicken', 'Chicken Tikka Masala', 'Dal Makhani',
    'Palak Paneer', 'Kadai Paneer', 'Shahi Paneer', 'Malai Kofta', 'Chole Bhature',
    'Rajma Chawal', 'Aloo Gobi', 'Baingan Bharta', 'Bhindi Masala',

    # Breads
    'Butter Naan', 'Garlic Naan', 'Plain Naan', 'Tandoori Roti', 'Laccha Paratha',
    'Missi Roti', 'Roomali Roti', 'Kulcha', 'Bhatura', 'Puri',

    # South Indian
    'Masala Dosa', 'Plain Dosa', 'Idli', 'Vada', 'Medu Vada', 'Uttapam',
    'Rava Dosa', 'Onion Dosa', 'Paper Dosa', 'Sambar', 'Rasam',

    # Chinese & Indo-Chinese
    'Chilli Chicken', 'Manchurian', 'Fried Rice', 'Hakka Noodles', 'Schezwan Noodles',
    'Spring Roll', 'Momos', 'Chowmein', 'Gobi Manchurian', 'Paneer Chilli',

    # Rice
    'Biryani', 'Veg Biryani', 'Chicken Biryani', 'Mutton Biryani', 'Egg Biryani',
    'Pulao', 'Jeera Rice', 'Plain Rice', 'Steamed Rice',

    # Fast food
    'Pizza', 'Burger', 'Sandwich', 'French Fries', 'Pasta', 'Garlic Bread',
    'Nachos', 'Tacos', 'Wrap', 'Sub', 'Hot Dog',

    # Desserts
    'Gulab Jamun', 'Rasgulla', 'Rasmalai', 'Kulfi', 'Ice Cream', 'Brownie',
    'Pastry', 'Cake', 'Kheer', 'Gajar Halwa', 'Jalebi',

    # Drinks
    'Lassi', 'Masala Chai', 'Coffee', 'Cold Coffee', 'Cappuccino', 'Latte',
    'Fresh Lime', 'Coca Cola', 'Pepsi', 'Sprite', 'Thumbs Up', 'Fanta',
    'Mango Shake', 'Chocolate Shake', 'Buttermilk', 'Mineral Water',

    # Starters
    'Paneer Tikka', 'Chicken Tikka', 'Tandoori Chicken', 'Kebab', 'Seekh Kebab',
    'Hara Bhara Kebab', 'Veg Cutlet', 'Samosa', 'Pakora', 'Aloo Tikki',
)

# Known OCR misreads, applied in this order to the cumulative result.
OCR_CORRECTIONS: Tuple[Tuple[str, str], ...] = (
    ('Naan1', 'Naan'),
    ('Naan!', 'Naan'),
    ('Poneer', 'Paneer'),
    ('Panner', 'Paneer'),
    ('Panir', 'Paneer'),
    ('Chikcen', 'Chicken'),
    ('Chiken', 'Chicken'),
    ('Chickn', 'Chicken'),
    ('Masla', 'Masala'),
    ('Masaala', 'Masala'),
    ('Biryanii', 'Biryani'),
    ('Biriyani', 'Biryani'),
    ('Dosa)', 'Dosa'),
    ('Dosa1', 'Dosa'),
    ('Momos)', 'Momos'),
    ('Momose', 'Momos'),
)

_COMPILED_CORRECTIONS = tuple(
    (re.compile(re.escape(wrong), re.IGNORECASE), right)
    for wrong, right in OCR_CORRECTIONS
)

_NORMALIZED_VOCABULARY = tuple((entry, entry.lower()) for entry in FOOD_VOCABULARY)


@dataclass(frozen=True)
class MatchResult:
    """Closest vocabulary entry for a query string."""
    matched_name: str
    edit_distance: int
    confidence: int


def levenshtein_distance(first: str, second: str) -> int:
    """
    Compute the Levenshtein edit distance between two strings.

    Args:
        first: First string
        second: Second string

    Returns:
        Minimum number of single-character insertions, deletions or
        substitutions turning ``first`` into ``second``
    """
    if first == second:
        return 0
    if not first:
        return len(second)
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, first_char in enumerate(first, start=1):
        current = [i]
        for j, second_char in enumerate(second, start=1):
            if first_char == second_char:
                current.append(previous[j - 1])
            else:
                current.append(min(
                    previous[j - 1] + 1,  # substitution
                    current[j - 1] + 1,   # insertion
                    previous[j] + 1       # deletion
                ))
        previous = current

    return previous[-1]


def find_closest_match(query: str, max_distance: int = 3) -> Optional[MatchResult]:
    """
    Find the vocabulary entry closest to ``query``.

    Comparison is case-insensitive. Ties go to the entry declared first in
    FOOD_VOCABULARY.

    Args:
        query: Candidate item name
        max_distance: Largest edit distance still considered a match

    Returns:
        MatchResult, or None if nothing is within ``max_distance``
    """
    normalized_query = query.lower().strip()
    best_match = None
    best_distance = None

    for entry, normalized_entry in _NORMALIZED_VOCABULARY:
        distance = levenshtein_distance(normalized_query, normalized_entry)
        if best_distance is None or distance < best_distance:
            best_distance = distance
            best_match = entry
            if distance == 0:
                break

    if best_match is None or best_distance > max_distance:
        return None

    confidence = max(0, 100 - best_distance * 20)
    return MatchResult(matched_name=best_match, edit_distance=best_distance, confidence=confidence)


def correct_ocr_errors(text: str) -> str:
    """Apply the known OCR misread corrections to ``text``."""
    corrected = text
    for pattern, replacement in _COMPILED_CORRECTIONS:
        corrected = pattern.sub(replacement, corrected)
    return corrected
