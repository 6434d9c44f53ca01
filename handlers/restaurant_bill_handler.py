import re
import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, List, NamedTuple, Optional, Pattern, Sequence, Tuple, Union

from handlers.base_handler import BaseBillHandler
from models.bill import ExtractedItem, BillMetadata
from utils.food_vocabulary import correct_ocr_errors, find_closest_match

logger = logging.getLogger(__name__)

# Amounts may use thousands separators ("1,250.00")
AMOUNT = r'(\d{1,3}(?:,\d{3})+(?:\.\d{2})?|\d+(?:\.\d{2})?)'

# Amount following a label on the same line, skipping an optional rate such
# as "2.5%" and refusing to read the rate itself as the amount
LABELED_AMOUNT = (
    r'[^\d\n]*?(?:\d+(?:\.\d+)?[^\S\n]*%[^\d\n]*?)?'
    r'(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)(?![\d.,]*[^\S\n]*%)(?![\dA-Za-z])'
)

# Registration number labels such as "GST No:" or "Tax Reg. No"
NOT_TAX_ID = r'(?![^\S\n]*(?:no|number|reg(?:istration)?)\b)'

MIN_PRICE = Decimal('0')
MAX_PRICE = Decimal('10000')
MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 200
DEFAULT_CONFIDENCE = 85
REPLACE_CONFIDENCE = 80
SUGGEST_CONFIDENCE = 60
MERCHANT_SEARCH_LINES = 5


class PatternMatch(NamedTuple):
    """Value captured by an extraction pattern and the text left after removing it."""
    pattern: str
    value: Union[int, Decimal]
    residual: str


def _labeled(label: str) -> Pattern:
    return re.compile(label + LABELED_AMOUNT, re.IGNORECASE)


class RestaurantBillHandler(BaseBillHandler):
    """Handler for OCR text of photographed restaurant bills."""

    # Lines matching any of these are totals, taxes or header/footer text
    EXCLUDE_PATTERNS: Tuple[Pattern, ...] = (
        re.compile(r'total', re.IGNORECASE),
        re.compile(r'sub\s*total', re.IGNORECASE),
        re.compile(r'grand\s*total', re.IGNORECASE),
        re.compile(r'gst', re.IGNORECASE),
        re.compile(r'cgst', re.IGNORECASE),
        re.compile(r'sgst', re.IGNORECASE),
        re.compile(r'tax', re.IGNORECASE),
        re.compile(r'service\s*charge', re.IGNORECASE),
        re.compile(r'discount', re.IGNORECASE),
        re.compile(r'bill\s*(?:no|number|#)', re.IGNORECASE),
        re.compile(r'invoice', re.IGNORECASE),
        re.compile(r'receipt\s*(?:no|number|#)', re.IGNORECASE),
        re.compile(r'date', re.IGNORECASE),
        re.compile(r'\d{1,2}[-/]\d{1,2}[-/]\d{2,4}'),
        re.compile(r'time', re.IGNORECASE),
        re.compile(r'\b\d{1,2}:\d{2}\b'),
        re.compile(r'phone', re.IGNORECASE),
        re.compile(r'mobile', re.IGNORECASE),
        re.compile(r'address', re.IGNORECASE),
        re.compile(r'thank\s*you', re.IGNORECASE),
        re.compile(r'visit\s*again', re.IGNORECASE),
        re.compile(r'^\d{10,}'),  # phone numbers, GST identifiers
        re.compile(r'^[A-Z0-9]{15,}'),  # alphanumeric IDs
    )

    # Checked in order, the first match wins
    QUANTITY_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
        ('count_x', re.compile(r'(\d+)\s*x', re.IGNORECASE)),        # "2x"
        ('x_count', re.compile(r'x\s*(\d+)', re.IGNORECASE)),        # "x2"
        ('parenthesized', re.compile(r'\((\d+)\)')),                 # "(2)"
        ('qty_label', re.compile(r'qty\s*[:.]?\s*(\d+)', re.IGNORECASE)),  # "Qty: 2"
        ('pieces', re.compile(r'(\d+)\s*pcs?', re.IGNORECASE)),      # "2 PC"
        ('nos', re.compile(r'(\d+)\s*nos', re.IGNORECASE)),          # "2 nos"
        ('star', re.compile(r'\*\s*(\d+)')),                         # "*2"
    )

    # Checked in order; a match outside the accepted range falls through
    PRICE_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
        ('currency_symbol', re.compile(r'[₹$€£]\s*' + AMOUNT)),        # "₹220"
        ('rupees', re.compile(r'\bRs\.?\s*' + AMOUNT, re.IGNORECASE)),  # "Rs. 220"
        ('inr', re.compile(r'\bINR\s*' + AMOUNT, re.IGNORECASE)),       # "INR 220"
        ('slash_dash', re.compile(AMOUNT + r'\s*/-')),                  # "220/-"
        ('trailing_equals', re.compile(AMOUNT + r'\s*=')),              # "220="
        ('leading_equals', re.compile(r'=\s*' + AMOUNT)),               # "=220"
        # TODO: bare trailing numbers also catch plain counts ("Idli 2"); require a
        # decimal part or a column position once layout data is available
        ('trailing_number', re.compile(AMOUNT + r'$')),                 # "220"
    )

    DOT_LEADER_PATTERN = re.compile(r'\.{2,}|…+')
    TRAILING_JUNK_PATTERN = re.compile(r'[\s.…:|\-]+$')
    LEADING_JUNK_PATTERN = re.compile(r'^[\s:|\-]+')
    WHITESPACE_PATTERN = re.compile(r'\s+')

    BILL_NUMBER_PATTERN = re.compile(
        r'\b(?:bill|invoice|receipt)[^\S\n]*(?:number|no\.?|#)?[^\S\n]*[:.#\-]?[^\S\n]*'
        r'((?=[A-Z0-9\-/]*\d)[A-Z0-9][A-Z0-9\-/]*)',
        re.IGNORECASE
    )

    DATE_PATTERNS: Tuple[Pattern, ...] = (
        re.compile(r'\b(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})\b'),
        re.compile(
            r'\b(\d{1,2}(?:st|nd|rd|th)?[ \-]+'
            r'(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?,?[ \-]+\d{2,4})\b',
            re.IGNORECASE
        ),
    )

    SUBTOTAL_PATTERNS: Tuple[Pattern, ...] = (
        _labeled(r'\bsub[ \-]*total'),
    )

    # A line labelled "tax", "total tax" or "CGST+SGST" already covers both halves
    TAX_PATTERNS: Tuple[Pattern, ...] = (
        _labeled(r'\bcgst[ ]*(?:\+|&|and)[ ]*sgst\b'),
        _labeled(r'\b(?:total[ ]*)?tax(?:es)?\b(?![^\S\n]*invoice)' + NOT_TAX_ID),
        _labeled(r'\bgst\b' + NOT_TAX_ID),
        _labeled(r'\bvat\b'),
    )

    SPLIT_TAX_PATTERNS: Tuple[Pattern, ...] = (
        _labeled(r'\bcgst\b'),
        _labeled(r'\bsgst\b'),
    )

    DISCOUNT_PATTERNS: Tuple[Pattern, ...] = (
        _labeled(r'\bdiscount\b'),
        _labeled(r'\bdisc\b'),
    )

    TOTAL_PATTERNS: Tuple[Pattern, ...] = (
        _labeled(r'\bgrand[ \-]*total'),
        _labeled(r'\bnet[ ]*(?:amount|amt|payable|total)'),
        _labeled(r'\btotal[ ]*(?:amount|amt|payable|due)'),
        _labeled(r'(?<!sub )(?<!sub-)\btotal\b(?![^\S\n]*(?:tax|gst|qty|quantity|items?)\b)'),
    )

    def is_likely_bill_item(self, line: str) -> bool:
        """Check whether a line could be an item rather than a total, tax or header line."""
        for pattern in self.EXCLUDE_PATTERNS:
            if pattern.search(line):
                return False
        return True

    def extract_quantity(self, text: str) -> PatternMatch:
        """
        Extract the quantity from a line.

        Returns:
            PatternMatch with the quantity (1 if no pattern matched) and the
            line with the quantity marker removed
        """
        match = self._first_match(self.QUANTITY_PATTERNS, text, int, lambda qty: qty > 0)
        if match is None:
            return PatternMatch('default', 1, text)
        return match

    def extract_price(self, text: str) -> Optional[PatternMatch]:
        """
        Extract the price from a line.

        Returns:
            PatternMatch with the price and the remaining text, or None if no
            pattern yields a price between 0 and 10000 (exclusive)
        """
        return self._first_match(
            self.PRICE_PATTERNS, text, self._to_decimal,
            lambda price: price is not None and MIN_PRICE < price < MAX_PRICE
        )

    def clean_item_name(self, text: str) -> str:
        """Correct OCR misreads and strip leader dots, separators and extra whitespace."""
        name = correct_ocr_errors(text)
        name = self.DOT_LEADER_PATTERN.sub(' ', name)
        name = self.TRAILING_JUNK_PATTERN.sub('', name)
        name = self.LEADING_JUNK_PATTERN.sub('', name)
        name = self.WHITESPACE_PATTERN.sub(' ', name)
        return name.strip()

    def parse_line(self, line: str) -> Optional[ExtractedItem]:
        """Parse one trimmed line of OCR text into an item."""
        if not self.is_likely_bill_item(line):
            logger.debug(f"Skipping non-item line: {line!r}")
            return None

        quantity = self.extract_quantity(line)

        price = self.extract_price(quantity.residual)
        if price is None:
            logger.debug(f"No price found in line: {line!r}")
            return None

        name = self.clean_item_name(price.residual)
        if len(name) < MIN_NAME_LENGTH:
            logger.debug(f"Item name too short in line: {line!r}")
            return None
        if len(name) > MAX_NAME_LENGTH:
            logger.debug(f"Item name too long in line: {line[:50]!r}...")
            return None

        confidence = DEFAULT_CONFIDENCE
        suggestion = None
        match = find_closest_match(name)
        if match is not None:
            if match.confidence > REPLACE_CONFIDENCE:
                name = match.matched_name
                confidence = match.confidence
            elif match.confidence > SUGGEST_CONFIDENCE:
                suggestion = match.matched_name
                confidence = match.confidence

        return ExtractedItem(
            name=name,
            price=price.value,
            quantity=quantity.value,
            confidence_score=confidence,
            raw_source_line=line,
            suggestion=suggestion
        )

    def extract_metadata(self, text: str, lines: Optional[List[str]] = None) -> BillMetadata:
        """Extract merchant, bill number, date and amounts from the full bill text."""
        if lines is None:
            lines = self.split_lines(text)

        return BillMetadata(
            merchant_name=self.extract_merchant_name(lines),
            bill_number=self.extract_bill_number(text),
            date=self.extract_date(text),
            subtotal=self._search_amount(self.SUBTOTAL_PATTERNS, text),
            tax=self.extract_tax(text),
            discount=self._search_amount(self.DISCOUNT_PATTERNS, text),
            total=self._search_amount(self.TOTAL_PATTERNS, text)
        )

    def extract_merchant_name(self, lines: Sequence[str]) -> Optional[str]:
        """Return the first of the leading lines that looks like a name rather than data."""
        for line in lines[:MERCHANT_SEARCH_LINES]:
            if 4 <= len(line) <= 49 and not any(char.isdigit() for char in line):
                return line
        return None

    def extract_bill_number(self, text: str) -> Optional[str]:
        match = self.BILL_NUMBER_PATTERN.search(text)
        return match.group(1) if match else None

    def extract_date(self, text: str) -> Optional[str]:
        for pattern in self.DATE_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1)
        return None

    def extract_tax(self, text: str) -> Optional[Decimal]:
        """Extract the tax amount, adding CGST and SGST when they are listed separately."""
        combined = self._search_amount(self.TAX_PATTERNS, text)
        if combined is not None:
            return combined

        parts = [self._search_amount((pattern,), text) for pattern in self.SPLIT_TAX_PATTERNS]
        parts = [part for part in parts if part is not None]
        if not parts:
            return None
        return sum(parts, Decimal('0'))

    def _search_amount(self, patterns: Sequence[Pattern], text: str) -> Optional[Decimal]:
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                amount = self._to_decimal(match.group(1))
                if amount is not None:
                    return amount
        return None

    @staticmethod
    def _to_decimal(value: str) -> Optional[Decimal]:
        try:
            return Decimal(value.replace(',', ''))
        except InvalidOperation:
            logger.debug(f"Could not parse amount {value!r}")
            return None

    @staticmethod
    def _first_match(patterns: Sequence[Tuple[str, Pattern]], text: str,
                     convert: Callable, is_valid: Callable) -> Optional[PatternMatch]:
        for label, pattern in patterns:
            match = pattern.search(text)
            if not match:
                continue
            value = convert(match.group(1))
            if not is_valid(value):
                continue
            residual = f"{text[:match.start()]} {text[match.end():]}".strip()
            return PatternMatch(label, value, residual)
        return None


_default_handler = RestaurantBillHandler()


def is_likely_bill_item(line: str) -> bool:
    """Check a single line with the default restaurant bill handler."""
    return _default_handler.is_likely_bill_item(line)


def parse_bill_text(text: str):
    """
    Parse OCR text of a restaurant bill.

    Args:
        text: Raw OCR output, one bill line per text line

    Returns:
        ParseResult with items and metadata
    """
    return _default_handler.parse(text)
