import pydantic
import pytest
import tomlkit
import web3

from balance_proxy import deployments
from balance_proxy.chain import Web3ChainClient
from balance_proxy.config import (
    PipelineSettings,
    ProxyDeployment,
    Settings,
    load_config_from_file,
    settings,
)
from balance_proxy.connection import async_connection_manager
from balance_proxy.exceptions import BalanceProxyValueError
from tests.conftest import APPROVE_ROUTER, BALANCE_PROXY, UNIVERSAL_ROUTER


def test_pipeline_defaults():
    defaults = PipelineSettings()
    assert defaults.default_slippage_diffs == 0.001
    assert defaults.default_slippage_pre_post == 1.0
    assert defaults.simulation_attempts == 100
    assert defaults.simulation_delay == 0.5
    assert defaults.approval_buffer == 1.001
    assert defaults.gas_safety_multiplier == 1.5
    assert defaults.fail_closed_on_layout_mismatch is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"default_slippage_diffs": -0.1},
        {"default_slippage_pre_post": 101},
        {"simulation_attempts": 0},
        {"approval_buffer": 0.9},
    ],
)
def test_pipeline_settings_validation(overrides: dict):
    with pytest.raises(pydantic.ValidationError):
        PipelineSettings(**overrides)


def test_deployment_addresses_are_checksummed():
    deployment = ProxyDeployment(balance_proxy=BALANCE_PROXY.lower())
    assert deployment.balance_proxy == BALANCE_PROXY
    assert deployment.approve_router is None


def test_load_config_from_file(tmp_path):
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        tomlkit.dumps(
            {
                "pipeline": {"simulation_attempts": 5, "fail_closed_on_layout_mismatch": True},
                "rpc": {"1": "http://localhost:8545", "11155111": "~/sepolia.ipc"},
                "deployments": {"1": {"balance_proxy": BALANCE_PROXY}},
            }
        )
    )

    loaded = load_config_from_file(config_file)

    assert loaded.pipeline.simulation_attempts == 5
    assert loaded.pipeline.fail_closed_on_layout_mismatch is True
    assert loaded.deployments[1].balance_proxy == BALANCE_PROXY
    assert loaded.rpc[11155111].is_absolute()
    assert str(loaded.rpc[1]).startswith("http://localhost:8545")


def test_settings_round_trip_through_json_mode():
    dumped = Settings().model_dump(mode="json", exclude_none=True)
    assert Settings.model_validate(dumped) == Settings()


def test_builtin_deployment():
    deployment = deployments.get_deployment(deployments.SEPOLIA_CHAIN_ID)
    assert deployment.balance_proxy == BALANCE_PROXY
    assert deployment.universal_router == UNIVERSAL_ROUTER


def test_registered_deployment_takes_precedence():
    replacement = ProxyDeployment(balance_proxy=APPROVE_ROUTER)
    deployments.register_deployment(deployments.SEPOLIA_CHAIN_ID, replacement)
    assert deployments.get_deployment(deployments.SEPOLIA_CHAIN_ID) is replacement


def test_unknown_deployment():
    unknown_chain = max([*settings.deployments, 11155111]) + 1
    with pytest.raises(BalanceProxyValueError, match="No balance proxy deployment"):
        deployments.get_deployment(unknown_chain)


async def test_disconnected_web3():
    w3 = web3.AsyncWeb3(web3.AsyncHTTPProvider("http://127.0.0.1:1"))
    with pytest.raises(BalanceProxyValueError, match="Web3 instance is not connected."):
        await async_connection_manager.register_web3(w3)


def test_connection_manager_defaults():
    with pytest.raises(BalanceProxyValueError):
        _ = async_connection_manager.default_chain_id

    with pytest.raises(BalanceProxyValueError):
        async_connection_manager.get_web3(69)


async def test_register_from_config_without_rpc():
    unknown_chain = max([*settings.rpc, 1]) + 1
    with pytest.raises(BalanceProxyValueError, match="does not have an RPC defined"):
        await async_connection_manager.register_from_config(unknown_chain)


def test_chain_client_from_registered_connection():
    w3 = web3.AsyncWeb3(web3.AsyncHTTPProvider("http://127.0.0.1:1"))
    async_connection_manager.connections[11155111] = w3
    async_connection_manager.set_default_chain(11155111)

    assert Web3ChainClient.from_connection().w3 is w3
    assert Web3ChainClient.from_connection(11155111, receipt_timeout=5).receipt_timeout == 5

    with pytest.raises(BalanceProxyValueError):
        Web3ChainClient.from_connection(1)
