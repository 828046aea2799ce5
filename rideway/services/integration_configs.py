"""
Typed integration configs.

The stored config blob is decoded once, at the dispatch boundary, into the
model matching the integration's type. Field names follow the camelCase
shape clients send (`baseUrl`, `longLivedToken`, ...).
"""

import json
from typing import Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from rideway.models.integration import IntegrationType
from rideway.services.errors import IntegrationConfigError


class _ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class WebhookAuthentication(_ConfigModel):
    type: Literal["none", "basic", "bearer"] = "none"
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None


class WebhookConfig(_ConfigModel):
    name: Optional[str] = None
    url: str = Field(min_length=1)
    method: Literal["GET", "POST", "PUT", "PATCH"] = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    authentication: Optional[WebhookAuthentication] = None
    payload_template: Optional[str] = None
    use_custom_payload: bool = False


class HomeAssistantConfig(_ConfigModel):
    name: Optional[str] = None
    base_url: str = Field(min_length=1)
    long_lived_token: str = Field(min_length=1)
    entity_id: Optional[str] = None


class NtfyAuthorization(_ConfigModel):
    type: Literal["none", "basic", "token"] = "none"
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None


class NtfyConfig(_ConfigModel):
    name: Optional[str] = None
    topic: str = Field(min_length=1)
    server: Optional[str] = None
    priority: Optional[Literal["min", "low", "default", "high", "urgent", "max"]] = None
    authorization: Optional[NtfyAuthorization] = None


IntegrationConfig = Union[WebhookConfig, HomeAssistantConfig, NtfyConfig]

CONFIG_MODELS: Dict[str, Type[_ConfigModel]] = {
    IntegrationType.WEBHOOK.value: WebhookConfig,
    IntegrationType.HOMEASSISTANT.value: HomeAssistantConfig,
    IntegrationType.NTFY.value: NtfyConfig,
}


def decode_integration_config(integration_type: str, raw: Union[str, dict]) -> IntegrationConfig:
    """
    Parse a decrypted config (JSON text or dict) into its typed model.

    Raises:
        IntegrationConfigError: unknown type, invalid JSON, or fields that
            do not fit the type
    """
    model = CONFIG_MODELS.get(integration_type)
    if model is None:
        raise IntegrationConfigError(f"Unsupported integration type: {integration_type}")

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise IntegrationConfigError(f"Integration config is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise IntegrationConfigError("Integration config must be a JSON object")

    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise IntegrationConfigError(
            f"Invalid {integration_type} config: {e.error_count()} error(s)"
        ) from e


def encode_integration_config(config: IntegrationConfig) -> str:
    """JSON text for storage, in the client-facing camelCase shape."""
    return config.model_dump_json(by_alias=True, exclude_none=True)
