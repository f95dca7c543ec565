"""Unit tests for topology validation and ordering."""

import pytest

from snackshack_deployments.exceptions import ConfigurationError
from snackshack_deployments.resolver import StepKind, resolve
from snackshack_deployments.types import (
    DEPLOYER,
    ConfigurationCall,
    ContractSpec,
    FarmType,
    Mode,
    PoolRegistration,
    Ref,
    Topology,
)

SQRT_MATH = "contracts/lib/SqrtMath.sol:SqrtMath"
ADDRESS = "0x2b8a8845b9bbb8b5beef1d95ef6a60701d867142"


def topology(contracts, farm="Farm", calls=None, pools=None) -> Topology:
    return Topology(
        network="rinkeby", contracts=contracts, farm=farm, calls=calls or [], pools=pools or []
    )


def spec(name, *args, **kwargs) -> ContractSpec:
    return ContractSpec(name=name, artifact=kwargs.pop("artifact", name), args=args, **kwargs)


class TestOrdering:
    """Resolved order places every contract before anything referencing it."""

    def test_small_topology_keeps_declared_order(self, small_topology: Topology):
        plan = resolve(small_topology)

        assert [step.spec.name for step in plan.steps] == ["TokenA", "TokenB", "Farm", "ControllerX"]
        assert all(step.kind is StepKind.DEPLOY for step in plan.steps)
        assert plan.farm == "Farm"
        assert len(plan.pools) == 1

    def test_every_reference_precedes_its_user(self, small_topology: Topology):
        plan = resolve(small_topology)
        position = {step.spec.name: i for i, step in enumerate(plan.steps)}

        for step in plan.steps:
            for ref in step.spec.dependencies():
                assert position[ref.name] < position[step.spec.name]

    def test_attach_existing_becomes_attach_step(self):
        plan = resolve(
            topology([spec("Token", mode=Mode.ATTACH_EXISTING, address=ADDRESS), spec("Farm", Ref("Token"))])
        )

        assert [step.kind for step in plan.steps] == [StepKind.ATTACH, StepKind.DEPLOY]

    def test_call_scheduled_after_last_referenced_contract(self):
        call = ConfigurationCall(
            target=Ref("Token"), method="transferOwnership", args=(Ref("Farm"),)
        )
        plan = resolve(
            topology(
                [spec("Token"), spec("Math"), spec("Farm", Ref("Token")), spec("Controller", Ref("Farm"))],
                calls=[call],
            )
        )

        assert [step.description for step in plan.steps] == [
            "deploy Token",
            "deploy Math",
            "deploy Farm",
            "Token.transferOwnership",
            "deploy Controller",
        ]

    def test_call_without_args_runs_right_after_target(self):
        mint = ConfigurationCall(target=Ref("Nft"), method="mint", label="Minted")
        plan = resolve(topology([spec("Nft"), spec("Farm")], calls=[mint]))

        assert [step.kind for step in plan.steps] == [StepKind.DEPLOY, StepKind.CALL, StepKind.DEPLOY]
        assert plan.steps[1].description == "Minted"

    def test_calls_keep_declared_order_at_same_position(self):
        calls = [
            ConfigurationCall(target=Ref("Farm"), method="first"),
            ConfigurationCall(target=Ref("Farm"), method="second", args=(DEPLOYER,)),
        ]
        plan = resolve(topology([spec("Farm")], calls=calls))

        assert [step.call.method for step in plan.steps if step.call] == ["first", "second"]

    def test_contract_steps_excludes_calls(self):
        mint = ConfigurationCall(target=Ref("Farm"), method="mint")
        plan = resolve(topology([spec("Farm")], calls=[mint]))

        assert [step.spec.name for step in plan.contract_steps()] == ["Farm"]


class TestValidation:
    """Invalid topologies fail before anything is executed."""

    def test_forward_reference_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve(topology([spec("Farm", Ref("Token")), spec("Token")]))

        assert "Token" in str(exc_info.value)

    def test_self_reference_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve(topology([spec("Farm", Ref("Farm"))]))

    def test_undeclared_argument_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve(topology([spec("Farm", Ref("Missing"))]))

        assert "undeclared" in str(exc_info.value)

    def test_undeclared_library_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve(topology([spec("Farm", libraries={SQRT_MATH: Ref("SqrtMath")})]))

        assert "SqrtMath" in str(exc_info.value)

    def test_later_declared_library_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve(
                topology([spec("Farm", libraries={SQRT_MATH: Ref("SqrtMath")}), spec("SqrtMath")])
            )

    def test_library_must_be_a_reference(self):
        with pytest.raises(ConfigurationError):
            resolve(topology([spec("Farm", libraries={SQRT_MATH: ADDRESS})]))

    def test_duplicate_names_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve(topology([spec("Farm"), spec("Farm")]))

        assert "more than once" in str(exc_info.value)

    def test_undeclared_farm_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve(topology([spec("Token")], farm="Farm"))

    def test_call_on_undeclared_target_rejected(self):
        call = ConfigurationCall(target=Ref("Ghost"), method="mint")

        with pytest.raises(ConfigurationError):
            resolve(topology([spec("Farm")], calls=[call]))

    def test_pool_with_undeclared_controller_rejected(self):
        pool = PoolRegistration(100, FarmType.SCALED, Ref("Farm"), Ref("Controller"))

        with pytest.raises(ConfigurationError):
            resolve(topology([spec("Farm")], pools=[pool]))

    def test_pool_with_literal_addresses_accepted(self):
        pool = PoolRegistration(100, FarmType.STANDARD, ADDRESS, ADDRESS)

        plan = resolve(topology([spec("Farm")], pools=[pool]))

        assert plan.pools == [pool]
