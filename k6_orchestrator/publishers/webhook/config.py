"""Configuration for the webhook publisher."""

from pydantic import BaseModel, Field, SecretStr


class WebhookConfig(BaseModel):
    """Configuration for the webhook publisher."""

    url: str
    token: SecretStr | None = None
    timeout: float = Field(default=10.0, gt=0)
