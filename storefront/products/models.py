from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

DEFAULT_IMAGE = "https://picsum.photos/seed/picsum/600/400"


class SkinType(str, Enum):
    COMBINATION = "Combination"
    DRY = "Dry"
    OILY = "Oily"
    NORMAL = "Normal"


class ProductCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    price: Decimal = Field(default=Decimal("10"), gt=0, max_digits=12, decimal_places=2)
    description: str = "This is a product"
    skin_type: SkinType = SkinType.NORMAL
    images: List[str] = Field(default_factory=lambda: [DEFAULT_IMAGE])
    category_id: Optional[str] = None

    def to_row(self) -> dict:
        # Decimal -> str pour conserver la précision dans la colonne numeric
        return self.model_dump(mode="json")


class ProductUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    skin_type: Optional[SkinType] = None
    images: Optional[List[str]] = None
    category_id: Optional[str] = None

    def to_row(self) -> dict:
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)
