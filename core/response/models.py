from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CustomBaseModel(BaseModel):
    """
    Base for request/response schemas. Fields are snake_case in Python and
    camelCase on the wire, which is what the web and service-worker clients send.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CustomBaseModel):
    success: bool = Field(True)
    message: str = Field(...)
