from typing import Optional

from pydantic import BaseModel, Field, model_validator

from arena.domain.enums import ItemType, PaymentOption


class CartItemCreate(BaseModel):
    item_type: ItemType = ItemType.PRODUCT
    product_id: Optional[int] = None
    tournament_id: Optional[int] = None
    event_id: Optional[int] = None
    quantity: int = Field(default=1, gt=0)
    payment_option: PaymentOption = PaymentOption.ONLINE

    @model_validator(mode="after")
    def check_reference(self):
        field = f"{self.item_type.value}_id"
        if getattr(self, field) is None:
            raise ValueError(f"{field} is required for item_type '{self.item_type.value}'")
        return self


class CartItemResponse(BaseModel):
    id: int
    item_type: str
    product_id: Optional[int] = None
    tournament_id: Optional[int] = None
    event_id: Optional[int] = None
    quantity: int
    payment_option: str

    model_config = {"from_attributes": True}


class CartItemUpdate(BaseModel):
    quantity: int = Field(gt=0)
