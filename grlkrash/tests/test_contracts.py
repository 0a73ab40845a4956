import functools

import pytest

from grlkrash.chain.contracts import ContractService, MemoryCrystalContract, TokenContract, to_bps
from grlkrash.chain.transactions import TransactionManager
from grlkrash.errors import MaxRetriesExceeded, TransactionError
from grlkrash.retry import retry

from .conftest import OTHER, WALLET, FakeClock, FakeSigner, FakeW3


class FakeFunction:
    def __init__(self, contract, method, args):
        self.contract = contract
        self.method = method
        self.args = args

    def call(self):
        return self.contract.results[self.method]

    def build_transaction(self, params):
        self.contract.built.append((self.method, self.args, params))
        return {"to": self.contract.address, "data": "0x1234", **params}

    def estimate_gas(self, params):
        return 60_000


class FakeFunctions:
    def __init__(self, contract):
        self.contract = contract

    def __getattr__(self, method):
        return lambda *args: FakeFunction(self.contract, method, args)


class FakeContract:
    def __init__(self, address, results):
        self.address = address
        self.results = results
        self.built = []
        self.functions = FakeFunctions(self)


class FakeManager:
    def __init__(self, receipts):
        self.receipts = list(receipts)
        self.submitted = []

    def get_optimal_gas_price(self):
        return 2_000_000_000

    def submit_transaction(self, tx):
        self.submitted.append(tx)
        result = self.receipts.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def contract():
    return FakeContract(OTHER, {"decimals": 18, "balanceOf": 5 * 10 ** 18, "totalSupply": 10 ** 27})


@pytest.fixture
def service(contract):
    w3 = FakeW3()
    w3.eth.contract = lambda address, abi: contract
    return ContractService(w3=w3, signer=FakeSigner(), chain_id=84532, manager=FakeManager([{"status": 1}]))


def test_to_bps():
    assert to_bps(0.1) == 1000
    assert to_bps(0.025) == 250
    assert to_bps(0.5) == 5000


def test_reads(service):
    token = TokenContract(service, OTHER)
    assert token.decimals() == 18
    assert token.balance_of(WALLET) == 5
    assert token.total_supply() == 1_000_000_000


def test_execute_transaction_builds_and_submits(service, contract):
    receipt = service.execute_transaction(OTHER, [], "transfer", WALLET, 10)

    assert receipt["status"] == 1
    method, args, params = contract.built[0]
    assert method == "transfer"
    assert args == (WALLET, 10)
    assert params["from"] == WALLET
    assert params["gasPrice"] == 2_000_000_000
    assert params["chainId"] == 84532


def test_execute_transaction_retries_nonce_errors(service, monkeypatch):
    monkeypatch.setattr("grlkrash.chain.contracts.retry", functools.partial(retry, sleep=lambda s: None))
    service.manager = FakeManager([ValueError("nonce too low"), {"status": 1}])
    assert service.execute_transaction(OTHER, [], "transfer", WALLET, 1)["status"] == 1
    assert len(service.manager.submitted) == 2


def test_execute_transaction_reverted(service):
    service.manager = FakeManager([{"status": 0, "transactionHash": b"\x01" * 32}])
    with pytest.raises(TransactionError, match="reverted"):
        service.execute_transaction(OTHER, [], "transfer", WALLET, 1)


def test_execute_transaction_needs_signer(contract):
    w3 = FakeW3()
    w3.eth.contract = lambda address, abi: contract
    service = ContractService(w3=w3, chain_id=84532)
    assert service.manager is None
    with pytest.raises(TransactionError, match="No signer"):
        service.execute_transaction(OTHER, [], "transfer", WALLET, 1)


def test_enable_community_rewards_scales_arguments(service, contract):
    token = TokenContract(service, OTHER)
    token.enable_community_rewards(streaming_multiplier=0.1, max_reward_rate=0.2, min_stake_amount=1000)

    method, args, _ = contract.built[0]
    assert method == "enableCommunityRewards"
    assert args == (1000, 2000, 1000 * 10 ** 18)


def test_enable_nft_minting_scales_arguments(service, contract):
    token = TokenContract(service, OTHER)
    token.enable_nft_minting(max_supply=10_000, mint_price=1000, streaming_bonus=0.5)

    method, args, _ = contract.built[0]
    assert method == "enableNFTMinting"
    assert args == (10_000, 1000 * 10 ** 18, 5000)


def test_memory_crystal_balance(service, contract):
    contract.results["balanceOf"] = 3
    assert MemoryCrystalContract(service, OTHER).balance_of(WALLET) == 3


def test_exhausted_broadcasts_are_not_retried_again(contract, monkeypatch):
    outer_sleeps = []
    monkeypatch.setattr("grlkrash.chain.contracts.retry", functools.partial(retry, sleep=outer_sleeps.append))
    clock = FakeClock()
    w3 = FakeW3()
    w3.eth.contract = lambda address, abi: contract
    w3.eth.send_errors = [ValueError("nonce too low")] * 10
    signer = FakeSigner()
    manager = TransactionManager(w3, signer, chain_id=84532, clock=clock, sleep=clock.sleep)
    service = ContractService(w3=w3, signer=signer, chain_id=84532, manager=manager)

    with pytest.raises(MaxRetriesExceeded) as exc:
        service.execute_transaction(OTHER, [], "transfer", WALLET, 1)

    assert "nonce" not in str(exc.value)
    assert isinstance(exc.value.__cause__, ValueError)
    assert len(signer.signed) == TransactionManager.MAX_RETRIES
    assert clock.sleeps == [TransactionManager.RETRY_DELAY] * (TransactionManager.MAX_RETRIES - 1)
    assert outer_sleeps == []
