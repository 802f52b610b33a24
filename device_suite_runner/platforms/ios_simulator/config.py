"""Configuration for the iOS simulator platform."""

from collections.abc import Sequence

from pydantic import BaseModel, SecretStr


class IosSimulatorConfig(BaseModel):
    """Configuration for the iOS simulator platform."""

    username: str
    password: SecretStr
    client_id: str
    api_base_url: str = "https://exp.host"
    serve_command: Sequence[str] = ("npx", "expo", "start", "--ios")
    bundle_id: str = "host.exp.Exponent"
