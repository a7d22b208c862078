"""
Shared pieces for the request and response models.

Request bodies reject unknown keys so that, for example, a member cannot
slip ``role`` into a profile update. Responses are read straight off ORM
rows. Amounts are kept as ``Decimal`` internally and leave the API as
JSON numbers.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer

Money = Annotated[Decimal, PlainSerializer(float, return_type=float)]


class StandardizedModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, use_enum_values=True)


class StrictRequestModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
    )
