from balance_proxy.config import ProxyDeployment, settings
from balance_proxy.exceptions import BalanceProxyValueError
from balance_proxy.types.aliases import ChainId

SEPOLIA_CHAIN_ID = 11155111

_BUILTIN_DEPLOYMENTS: dict[ChainId, ProxyDeployment] = {
    SEPOLIA_CHAIN_ID: ProxyDeployment(
        balance_proxy="0x2c7E0B0e90EdF5CDE8D19759c005FD7b2a3A493d",
        universal_router="0x3A9D48AB9751398BbFa63ad67599Bb04e4BdF98b",
    ),
}

_registered_deployments: dict[ChainId, ProxyDeployment] = {}


def register_deployment(chain_id: ChainId, deployment: ProxyDeployment) -> None:
    """
    Register the proxy contract addresses for a chain, replacing any built-in or configured entry.
    """

    _registered_deployments[chain_id] = deployment


def get_deployment(chain_id: ChainId) -> ProxyDeployment:
    """
    Look up the deployment for a chain. Explicit registrations take precedence over the config
    file, which takes precedence over the built-in table.
    """

    for table in (_registered_deployments, settings.deployments, _BUILTIN_DEPLOYMENTS):
        if chain_id in table:
            return table[chain_id]

    raise BalanceProxyValueError(message=f"No balance proxy deployment known for chain {chain_id}")
