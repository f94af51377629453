"""
Wire message models for the IPS Agent.

Peers exchange JSON objects with the agent. This module defines the inbound
request shapes, the outbound reply shapes, and the decoder that turns a raw
frame into a request model.
"""

import json
from typing import Dict, Optional, Any, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import DecodeError


FILE_PATH_TYPE = "filePath"
SEND_DEVICE_NAME_ACTION = "sendDeviceName"


class WireModel(BaseModel):
    """Base for models that are serialized with camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class FilePathRequest(WireModel):
    """Request an unfiltered archive of a directory."""

    type: Literal["filePath"] = Field(FILE_PATH_TYPE, description="Message type marker")
    file_path: str = Field(..., alias="filePath", min_length=1, description="Directory to archive")

    @field_validator('file_path')
    @classmethod
    def validate_file_path(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("filePath cannot be blank")
        return v


class DeviceNameRequest(WireModel):
    """Request a device-scoped archive of the located installation."""

    action: Literal["sendDeviceName"] = Field(SEND_DEVICE_NAME_ACTION, description="Action marker")
    device_name: str = Field(..., alias="deviceName", min_length=1, description="Device identifier")


InboundMessage = Union[FilePathRequest, DeviceNameRequest]


class StatusReply(WireModel):
    """Outcome of an archive build."""

    type: Literal["success", "error"] = Field(..., description="Outcome")
    message: str = Field(..., description="Human-readable message")

    @classmethod
    def success(cls, message: str) -> 'StatusReply':
        return cls(type="success", message=message)

    @classmethod
    def error(cls, message: str) -> 'StatusReply':
        return cls(type="error", message=message)


class FileFoundReply(WireModel):
    """The installation artifact was located."""

    action: Literal["fileFound"] = "fileFound"
    file_name: str = Field(..., alias="fileName")
    directory: str


class FileNotFoundReply(WireModel):
    """The installation artifact could not be located."""

    action: Literal["fileNotFound"] = "fileNotFound"
    file_name: str = Field(..., alias="fileName")


OutboundMessage = Union[StatusReply, FileFoundReply, FileNotFoundReply]


def decode_message(raw: Union[str, bytes]) -> Optional[InboundMessage]:
    """
    Decode one inbound frame.

    Args:
        raw: Text frame, or binary frame holding UTF-8 JSON

    Returns:
        The decoded request, or None for a well-formed object of an
        unrecognized shape

    Raises:
        DecodeError: If the frame is not a JSON object, or a recognized shape
            carries invalid fields
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecodeError(f"Message is not valid UTF-8: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Message is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"Message must be a JSON object, got {type(data).__name__}")

    try:
        if data.get('type') == FILE_PATH_TYPE:
            return FilePathRequest.model_validate(data)
        if data.get('action') == SEND_DEVICE_NAME_ACTION and data.get('deviceName'):
            return DeviceNameRequest.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"Invalid message fields: {e}") from e

    return None
