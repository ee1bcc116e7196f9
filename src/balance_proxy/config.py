import tomllib
from pathlib import Path
from typing import Annotated

import tomlkit
from pydantic import (
    BaseModel,
    Field,
    HttpUrl,
    PositiveFloat,
    PositiveInt,
    WebsocketUrl,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from balance_proxy.logging import logger
from balance_proxy.types.aliases import ChainId
from balance_proxy.validation.evm_values import ValidatedAddress, ValidatedSlippage

CONFIG_DIR = Path.home() / ".config" / "balance_proxy"
CONFIG_FILE = CONFIG_DIR / "config.toml"


class ProxyDeployment(BaseModel):
    """
    Addresses of the balance proxy contracts on one chain. The routers are optional; a chain
    without them can only use the plain proxy entry points.
    """

    balance_proxy: ValidatedAddress
    approve_router: ValidatedAddress | None = None
    permit_router: ValidatedAddress | None = None
    universal_router: ValidatedAddress | None = None


class PipelineSettings(BaseModel):
    # Slippage values are percentages
    default_slippage_diffs: ValidatedSlippage = 0.001
    default_slippage_pre_post: ValidatedSlippage = 1.0
    simulation_attempts: PositiveInt = 100
    simulation_delay: Annotated[float, Field(ge=0)] = 0.5
    approval_buffer: Annotated[float, Field(ge=1)] = 1.001
    gas_safety_multiplier: PositiveFloat = 1.5
    permit_lifetime: PositiveInt = 3600
    use_permit_router: bool = True
    fail_closed_on_layout_mismatch: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict()

    pipeline: PipelineSettings = PipelineSettings()
    rpc: dict[
        ChainId,
        HttpUrl | WebsocketUrl | Path,
    ] = {}
    deployments: dict[ChainId, ProxyDeployment] = {}

    @field_validator("rpc", mode="after")
    def validate_paths(
        cls,  # noqa: N805
        rpc_dict: dict[ChainId, HttpUrl | WebsocketUrl | Path],
    ) -> dict[ChainId, HttpUrl | WebsocketUrl | Path]:
        """
        Validate the endpoints.

        This will convert all file paths to an absolute reference, leaving HTTP and WS URLs as-is.
        """

        return {
            chain_id: endpoint.expanduser().absolute() if isinstance(endpoint, Path) else endpoint
            for chain_id, endpoint in rpc_dict.items()
        }


def load_config_from_file(config_path: Path) -> Settings:
    return Settings.model_validate(
        tomllib.loads(
            config_path.read_text(),
        ),
    )


def save_config_to_file(config: Settings) -> None:
    # TOML tables require string keys, so dump in JSON mode to stringify chain IDs and URLs
    CONFIG_FILE.write_text(
        tomlkit.dumps(
            config.model_dump(mode="json", exclude_none=True),
        ),
    )


if not CONFIG_DIR.exists():
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    logger.info(f"Created a configuration directory at {CONFIG_DIR}.")

if CONFIG_FILE.exists():
    settings = load_config_from_file(CONFIG_FILE)
else:
    settings = Settings()
    save_config_to_file(settings)
    logger.info(f"Created a configuration file at {CONFIG_FILE}.")
