from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

OPENAPI_VERSION = "3.0.3"

ParameterLocation = Literal["path", "header", "query", "cookie"]


class _DocModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class Info(_DocModel):
    title: str
    version: str
    description: Optional[str] = None


class MediaType(_DocModel):
    schema_: dict[str, Any] = Field(alias="schema")


class Parameter(_DocModel):
    name: str
    in_: ParameterLocation = Field(alias="in")
    required: bool
    schema_: dict[str, Any] = Field(alias="schema")
    description: Optional[str] = None


class Header(_DocModel):
    required: bool
    schema_: dict[str, Any] = Field(alias="schema")


class RequestBody(_DocModel):
    required: bool = True
    content: dict[str, MediaType]


class ResponseObject(_DocModel):
    description: str
    headers: Optional[dict[str, Header]] = None
    content: Optional[dict[str, MediaType]] = None


class Operation(_DocModel):
    operation_id: Optional[str] = Field(default=None, alias="operationId")
    parameters: list[Parameter] = Field(default_factory=list)
    request_body: Optional[RequestBody] = Field(default=None, alias="requestBody")
    responses: dict[str, ResponseObject] = Field(default_factory=dict)


class Components(_DocModel):
    schemas: dict[str, dict[str, Any]] = Field(default_factory=dict)


class OpenAPIDocument(_DocModel):
    openapi: str = OPENAPI_VERSION
    info: Info
    paths: dict[str, dict[str, Operation]] = Field(default_factory=dict)
    components: Components = Field(default_factory=Components)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
