"""Structured bill models produced by the bill parser."""

from decimal import Decimal
from typing import List, Optional, Dict, Any
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field, field_validator


def new_item_id() -> str:
    """Generate a unique identifier for an extracted item."""
    return f"item_{uuid4().hex}"


def _quantize(v: Optional[Decimal]) -> Optional[Decimal]:
    if v is None:
        return v
    if v.as_tuple().exponent != -2:
        return v.quantize(Decimal('0.01'))
    return v


class ExtractedItem(BaseModel):
    """A single line item recognized on a bill."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_item_id)
    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., gt=Decimal('0'), lt=Decimal('10000'))
    quantity: int = Field(default=1, ge=1)
    confidence_score: int = Field(default=85, ge=0, le=100)
    raw_source_line: str = ''
    suggestion: Optional[str] = None

    @field_validator('price')
    @classmethod
    def validate_price(cls, v):
        """Store prices with exactly two decimal places."""
        return _quantize(v)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the item to a JSON-ready dictionary."""
        return {
            'id': self.id,
            'name': self.name,
            'price': float(self.price),
            'quantity': self.quantity,
            'confidence_score': self.confidence_score,
            'raw_source_line': self.raw_source_line,
            'suggestion': self.suggestion
        }


class BillMetadata(BaseModel):
    """Bill-level fields. Each is None when its pattern did not match."""

    model_config = ConfigDict(frozen=True)

    merchant_name: Optional[str] = None
    bill_number: Optional[str] = None
    date: Optional[str] = None
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    total: Optional[Decimal] = None

    @field_validator('subtotal', 'tax', 'discount', 'total')
    @classmethod
    def validate_amounts(cls, v):
        """Ensure monetary amounts have two decimal places."""
        return _quantize(v)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary containing only the fields that were found."""
        data = {}
        for key, value in self.model_dump(exclude_none=True).items():
            data[key] = float(value) if isinstance(value, Decimal) else value
        return data


class ParseResult(BaseModel):
    """Items and metadata extracted from one block of OCR text."""

    items: List[ExtractedItem] = Field(default_factory=list)
    metadata: BillMetadata = Field(default_factory=BillMetadata)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [item.to_dict() for item in self.items],
            'metadata': self.metadata.to_dict(),
            'item_count': len(self.items)
        }
