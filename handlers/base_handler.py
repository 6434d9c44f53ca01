from abc import ABC, abstractmethod
from typing import List, Optional
import logging

from models.bill import ExtractedItem, BillMetadata, ParseResult

logger = logging.getLogger(__name__)


class BaseBillHandler(ABC):
    """Base class for bill handlers.

    A handler turns the raw text produced by an OCR engine into structured
    line items and bill metadata. Handlers never raise for malformed text:
    lines and fields they cannot read are left out of the result.
    """

    def __init__(self):
        """Initialize the handler."""
        self.name = self.__class__.__name__
        logger.debug(f"Initialized {self.name}")

    @staticmethod
    def split_lines(text: str) -> List[str]:
        """Split text into trimmed, non-empty lines in their original order."""
        return [line.strip() for line in text.splitlines() if line.strip()]

    @abstractmethod
    def parse_line(self, line: str) -> Optional[ExtractedItem]:
        """
        Parse a single line into an item.

        Args:
            line: One trimmed line of OCR text

        Returns:
            The extracted item, or None if the line is not a parseable item
        """
        pass

    @abstractmethod
    def extract_metadata(self, text: str, lines: Optional[List[str]] = None) -> BillMetadata:
        """
        Extract bill-level metadata.

        Args:
            text: The full OCR text
            lines: Pre-split lines of ``text``, split here when omitted

        Returns:
            BillMetadata with the fields that could be found
        """
        pass

    def extract_items(self, text: str, lines: Optional[List[str]] = None) -> List[ExtractedItem]:
        """Extract line items from OCR text, in line order."""
        if lines is None:
            lines = self.split_lines(text)

        items = []
        for line in lines:
            item = self.parse_line(line)
            if item is not None:
                items.append(item)
        return items

    def parse(self, text: str) -> ParseResult:
        """Process bill text into items and metadata.

        Args:
            text: The OCR text from the bill

        Returns:
            ParseResult with the extracted items and metadata
        """
        text = text or ''
        lines = self.split_lines(text)
        items = self.extract_items(text, lines)
        metadata = self.extract_metadata(text, lines)

        logger.info(f"{self.name} extracted {len(items)} items from {len(lines)} lines")
        if not items:
            logger.info("No items detected")

        return ParseResult(items=items, metadata=metadata)
