"""Protocol topology of the Snack Shack farm, per environment."""

from typing import Callable, Dict, List

from web3 import Web3

from .constants import EXTERNAL_ADDRESSES, SQRT_MATH_LINK
from .exceptions import NetworkNotFoundError
from .types import (
    DEPLOYER,
    ConfigurationCall,
    ContractSpec,
    ControllerConfig,
    FarmType,
    LiquidityPoolParams,
    Mode,
    PoolRegistration,
    PoolType,
    Ref,
    Topology,
)

FARM = "SnackShack"

BUY_SPOT_PRICE = Web3.to_wei("0.05", "ether")
SELL_SPOT_PRICE = Web3.to_wei("0.1", "ether")
# 0.0000001 delta per 1 ETH of liquidity
DELTA_PER_LIQUIDITY = Web3.to_wei("0.0000001", "ether")


def _external_addresses(network: str) -> Dict[str, str]:
    return {
        key: Web3.to_checksum_address(address)
        for key, address in EXTERNAL_ADDRESSES[network].items()
    }


def _liquidity_pools(nft: str, external: Dict[str, str]) -> List[ContractSpec]:
    buy_wall = LiquidityPoolParams(
        nft=nft,
        factory=external["factory"],
        curve=external["linear_curve"],
        pool_type=PoolType.TOKEN,
        spot_price=BUY_SPOT_PRICE,
    )
    high_fee_trade = LiquidityPoolParams(
        nft=nft,
        factory=external["factory"],
        curve=external["exponential_curve"],
        pool_type=PoolType.TRADE,
        spot_price=SELL_SPOT_PRICE,
    )
    return [
        ContractSpec(
            name="BuyWallLp",
            artifact="SudoInuLP",
            args=(buy_wall.as_struct(),),
            label="Sudo INU Buy Wall LP",
        ),
        ContractSpec(
            name="HighFeeTradeLp",
            artifact="SudoInuLP",
            args=(high_fee_trade.as_struct(),),
            label="Sudo INU High Fee Sell LP",
        ),
    ]


def _farm_and_controllers(reward_token: str) -> List[ContractSpec]:
    """Math library, farm and controllers; identical on every network."""
    libraries = {SQRT_MATH_LINK: Ref("SqrtMath")}

    buy_wall = ControllerConfig(
        farm=Ref(FARM),
        pool=Ref("BuyWallLp"),
        fee=0,
        delta=0,
        spot_price=BUY_SPOT_PRICE,
        delta_per_liquidity=DELTA_PER_LIQUIDITY,
    )
    high_fee_trade = ControllerConfig(
        farm=Ref(FARM),
        pool=Ref("HighFeeTradeLp"),
        fee=Web3.to_wei("0.06", "ether"),  # 6% fee
        delta=Web3.to_wei("1.05", "ether"),  # 5% delta
        spot_price=SELL_SPOT_PRICE,
        delta_per_liquidity=DELTA_PER_LIQUIDITY,
    )

    return [
        ContractSpec(name="SqrtMath", artifact="SqrtMath", label="SqrtMath Library"),
        ContractSpec(
            name=FARM,
            artifact="SnackShack",
            args=(Ref(reward_token), DEPLOYER),
            libraries=libraries,
            label="Snack Shack Farm",
        ),
        ContractSpec(
            name="DefaultController",
            artifact="DefaultController",
            args=(Ref(FARM),),
            label="Default Controller",
        ),
        ContractSpec(
            name="BuyWallController",
            artifact="SudoController",
            args=buy_wall.constructor_args(),
            libraries=libraries,
            label="Buy Wall Controller",
        ),
        ContractSpec(
            name="HighFeeTradeController",
            artifact="SudoController",
            args=high_fee_trade.constructor_args(),
            libraries=libraries,
            label="Exponential Sell Controller",
        ),
    ]


def _pools(lp_token: str, wrapped_nft: str, reward_token: str) -> List[PoolRegistration]:
    return [
        PoolRegistration(1000, FarmType.STANDARD, Ref(lp_token), Ref("DefaultController")),
        PoolRegistration(150, FarmType.STANDARD, Ref(wrapped_nft), Ref("DefaultController")),
        PoolRegistration(150, FarmType.STANDARD, Ref(reward_token), Ref("DefaultController")),
        PoolRegistration(
            250, FarmType.SCALED, Ref("BuyWallLp"), Ref("BuyWallController"), label="BUY"
        ),
        PoolRegistration(
            100,
            FarmType.SCALED,
            Ref("HighFeeTradeLp"),
            Ref("HighFeeTradeController"),
            label="SELL",
        ),
    ]


def _transfer_snack_ownership() -> ConfigurationCall:
    return ConfigurationCall(
        target=Ref("SnackToken"),
        method="transferOwnership",
        args=(Ref(FARM),),
        label="Transferred SNACK ownership to Snack Shack Farm",
    )


def rinkeby_topology() -> Topology:
    """Full test deployment: mock tokens and a fresh NFT collection."""
    external = _external_addresses("rinkeby")

    contracts = [
        ContractSpec(
            name="FakeSnackXmonLp",
            artifact="MockERC20",
            args=("XMON/SNACK LP", "UNI-V2"),
            label="Fake XMON/SNACK LP",
        ),
        ContractSpec(
            name="FakeXmon",
            artifact="MockERC20",
            args=("XMON", "XMON"),
            label="Fake XMON",
        ),
        ContractSpec(name="SnackToken", artifact="SnackToken", label="SNACK"),
        ContractSpec(name="XminuNft", artifact="SudoInu", label="XMINU NFT"),
        ContractSpec(
            name="WrappedXminu",
            artifact="WrappedXminu",
            args=(Ref("XminuNft"),),
            label="Wrapped XMINU ERC20",
        ),
        # The bonding-curve pools trade the shared test collection
        *_liquidity_pools(external["sudo_test_nft"], external),
        *_farm_and_controllers("SnackToken"),
    ]

    calls = [
        ConfigurationCall(
            target=Ref("FakeSnackXmonLp"),
            method="mint",
            args=(DEPLOYER, Web3.to_wei(10, "ether")),
            label="Minted",
        ),
        ConfigurationCall(target=Ref("XminuNft"), method="mint", label="Minted"),
        _transfer_snack_ownership(),
    ]

    return Topology(
        network="rinkeby",
        contracts=contracts,
        farm=FARM,
        calls=calls,
        pools=_pools("FakeSnackXmonLp", "WrappedXminu", "SnackToken"),
    )


def mainnet_topology() -> Topology:
    """Production deployment on top of the live SNACK token, LP and NFT collection."""
    external = _external_addresses("mainnet")

    contracts = [
        ContractSpec(
            name="SnackToken",
            artifact="SnackToken",
            mode=Mode.ATTACH_EXISTING,
            address=external["snack"],
            label="SNACK",
        ),
        ContractSpec(
            name="XmonSnackLp",
            artifact="MockERC20",  # UNI-V2 pair; only ERC-20 metadata is used
            mode=Mode.ATTACH_EXISTING,
            address=external["xmon_snack_lp"],
            label="XMON/SNACK LP UNI-V2",
        ),
        ContractSpec(
            name="WrappedXminu",
            artifact="WrappedXminu",
            args=(external["sudo_inu_nft"],),
            label="Wrapped XMINU ERC20",
        ),
        *_liquidity_pools(external["sudo_inu_nft"], external),
        *_farm_and_controllers("SnackToken"),
    ]

    return Topology(
        network="mainnet",
        contracts=contracts,
        farm=FARM,
        calls=[_transfer_snack_ownership()],
        pools=_pools("XmonSnackLp", "WrappedXminu", "SnackToken"),
    )


TOPOLOGIES: Dict[str, Callable[[], Topology]] = {
    "mainnet": mainnet_topology,
    "rinkeby": rinkeby_topology,
}


def get_topology(network: str) -> Topology:
    """
    Get the protocol topology of an environment.

    Raises:
        NetworkNotFoundError: If no topology is defined for the network
    """
    if network not in TOPOLOGIES:
        raise NetworkNotFoundError(
            f"No topology for network '{network}'; known: {', '.join(sorted(TOPOLOGIES))}"
        )
    return TOPOLOGIES[network]()
