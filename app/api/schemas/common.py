from decimal import Decimal

from pydantic import BaseModel, ConfigDict, condecimal
from pydantic.alias_generators import to_camel

Money = condecimal(max_digits=12, decimal_places=2)


class RequestModel(BaseModel):
    """Request bodies use camelCase on the wire; snake_case is accepted too."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class ResponseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_encoders={Decimal: lambda v: format(v, ".2f")},
    )


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    detail: ErrorDetail
