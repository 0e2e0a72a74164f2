"""Operator configuration."""

from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

ENV_PREFIX = "AUGPOLICY_"

DEFAULT_DENYLIST = ["169.254.169.254/32", "127.0.0.0/8"]

# Environment values are comma-separated rather than JSON
CIDRList = Annotated[list[str], NoDecode]


class OperatorConfig(BaseSettings):
    """
    Runtime configuration of the operator.

    Sources, highest priority first: values passed to the constructor,
    AUGPOLICY_* environment variables, the YAML file set as ``yaml_file``
    in the model config, then the defaults below. Unknown keys are
    rejected.
    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="forbid")

    # IP filtering
    ip_denylist: CIDRList = Field(default_factory=lambda: list(DEFAULT_DENYLIST))
    ip_allowlist: CIDRList = Field(default_factory=list)
    auto_detect_pod_cidr: bool = False
    pod_cidr_refresh_interval: float = Field(300.0, gt=0)

    # Resolution (seconds)
    resolve_timeout: float = Field(10.0, gt=0)

    # Process; a port of 0 disables the endpoint
    metrics_port: int = Field(0, ge=0, le=65535)
    health_port: int = Field(8081, ge=0, le=65535)
    log_level: str = "INFO"
    kubeconfig: str | None = None

    @field_validator("ip_denylist", "ip_allowlist", mode="before")
    @classmethod
    def _split_cidrs(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: tuple[PydanticBaseSettingsSource, ...] = (init_settings, env_settings)
        if settings_cls.model_config.get("yaml_file"):
            sources += (YamlConfigSettingsSource(settings_cls),)
        return sources


def load_config(path: str | Path | None = None, overrides: dict[str, Any] | None = None) -> OperatorConfig:
    """
    Load configuration.

    Overrides whose value is None are ignored, so unset CLI options fall
    through to the environment, the file and the defaults.

    Raises:
        pydantic.ValidationError: If a value is invalid or a key is unknown.
    """
    values = {key.replace("-", "_"): value for key, value in (overrides or {}).items() if value is not None}
    if not path:
        return OperatorConfig(**values)

    class FileOperatorConfig(OperatorConfig):
        model_config = SettingsConfigDict(yaml_file=str(path))

    return FileOperatorConfig(**values)
