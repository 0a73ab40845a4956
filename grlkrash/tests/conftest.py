import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests
from web3.exceptions import TransactionNotFound

from grlkrash.storage import JsonStore

TEST_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
WALLET = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"  # address of TEST_KEY
OTHER = "0x000000000000000000000000000000000000dEaD"


class FakeClock:
    """Manual clock; `sleep` advances it."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds):
        self.now += seconds


class FakeEth:
    def __init__(self):
        self.chain_id = 84532
        self.gas_price = 1_000_000_000
        self.nonce_latest = 0
        self.nonce_pending = 0
        self.sent = []
        self.send_errors = []
        self.receipts = {}
        self.mine_on_send = False
        self.estimated = 50_000

    def get_transaction_count(self, address, block="latest"):
        return self.nonce_pending if block == "pending" else self.nonce_latest

    def estimate_gas(self, tx):
        return self.estimated

    def send_raw_transaction(self, raw):
        if self.send_errors:
            error = self.send_errors.pop(0)
            if error is not None:
                raise error
        self.sent.append(raw)
        if self.mine_on_send:
            from web3 import Web3

            tx_hash = Web3.to_hex(Web3.keccak(raw))
            self.receipts[tx_hash] = {"status": 1, "blockNumber": 10, "transactionHash": tx_hash}
        return raw

    def get_transaction_receipt(self, tx_hash):
        if tx_hash not in self.receipts:
            raise TransactionNotFound(f"{tx_hash} not found")
        return self.receipts[tx_hash]


class FakeW3:
    def __init__(self):
        self.eth = FakeEth()


class FakeSigner:
    """Deterministic raw bytes per transaction, so replacements get new hashes."""

    address = WALLET

    def __init__(self):
        self.signed = []
        self.error = None

    def sign_transaction(self, tx):
        if self.error:
            raise self.error
        self.signed.append(dict(tx))
        return json.dumps(tx, sort_keys=True, default=str).encode()

    def sign_message(self, text):
        return "0x" + "ab" * 65


class FakeBroadcaster:
    def __init__(self):
        self.campaigns = []
        self.teasers = []
        self.fail = False

    def create_campaign(self, message, platforms, content=None):
        if self.fail:
            raise RuntimeError("broadcast down")
        self.campaigns.append({"message": message, "platforms": platforms, "content": content})
        return {p: "posted" for p in platforms}

    def create_teaser(self, url, platforms, message):
        self.teasers.append({"url": url, "platforms": platforms, "message": message})
        return {p: "posted" for p in platforms}


class FakeToken:
    def __init__(self, balances=None, supply=1_000_000, first_received=None):
        self.balances = balances or {}
        self.supply = supply
        self.first_received = first_received or {}
        self.calls = []

    def balance_of(self, wallet):
        return self.balances.get(wallet.lower(), 0)

    def total_supply(self):
        return self.supply

    def first_received_at(self, wallet, from_block=0):
        return self.first_received.get(wallet.lower())

    def enable_community_rewards(self, **kwargs):
        self.calls.append(("enable_community_rewards", kwargs))
        return {"status": 1}

    def enable_nft_minting(self, **kwargs):
        self.calls.append(("enable_nft_minting", kwargs))
        return {"status": 1}


class FakeNFT:
    def __init__(self, balances=None):
        self.balances = balances or {}

    def balance_of(self, wallet):
        return self.balances.get(wallet.lower(), 0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def w3():
    return FakeW3()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def store(tmp_path):
    def make(name="state"):
        return JsonStore(tmp_path / f"{name}.json")
    return make


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Keep brain/ and logs/ writes inside the test's tmp dir."""
    from grlkrash import config, logging_utils

    monkeypatch.setattr(config, "BRAIN_DIR", str(tmp_path / "brain"))
    monkeypatch.setattr(config, "LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(logging_utils, "_log_dir", tmp_path / "logs")


class FakeTwitter:
    enabled = True

    def __init__(self, mentions=None):
        self.mentions = mentions or []
        self.replies = []
        self.images = []
        self.likes = []
        self.since_ids = []

    def get_mentions(self, since_id=None, max_results=10):
        self.since_ids.append(since_id)
        mentions, self.mentions = self.mentions, []
        return mentions

    def reply(self, tweet_id, text):
        self.replies.append((tweet_id, text))
        return "reply-id"

    def post_image(self, text, image_path, in_reply_to=None):
        self.images.append((text, str(image_path), in_reply_to))
        return "image-id"

    def post_text(self, text):
        self.replies.append((None, text))
        return "tweet-id"

    def like(self, tweet_id):
        self.likes.append(tweet_id)
        return True


class FakeChannel:
    enabled = True

    def __init__(self):
        self.sent = []
        self.alerts = []
        self.reports = []

    def send(self, message):
        self.sent.append(message)
        return True

    def send_alert(self, level, message):
        self.alerts.append((level, message))
        return True

    def send_status(self, agent_name, stats):
        self.reports.append(stats)
        return True


class FakeContent:
    """Keyword triage without the LLM."""

    def process_mention(self, text, username):
        from grlkrash.content.generator import IGNORE, make_decision

        decision = make_decision(text)
        if decision.action != IGNORE:
            decision.content = f"gm @{username}"
        return decision


@pytest.fixture
def make_agent(store, clock):
    from grlkrash.agent import GRLKRASHAgent
    from grlkrash.automation import MilestoneReleaseService
    from grlkrash.governance import GovernanceManager, VotingSecurityService
    from grlkrash.optimization import ContentOptimizer
    from grlkrash.social import RateLimitManager, SocialBroadcaster

    def make(**overrides):
        components = {
            "signer": None,
            "contracts": None,
            "token": None,
            "crystals": None,
            "twitter": FakeTwitter(),
            "telegram": FakeChannel(),
            "discord": FakeChannel(),
            "content": FakeContent(),
            "optimizer": ContentOptimizer(clock=clock),
            "ipfs": None,
            "token_analytics": None,
            "streaming": None,
            "state_store": store("agent_state"),
            "history_store": store("cycles"),
        }
        components.update(overrides)
        components.setdefault("rate_limits", RateLimitManager())
        components.setdefault("broadcaster", SocialBroadcaster(
            components["rate_limits"], twitter=components["twitter"],
            telegram=components["telegram"], discord=components["discord"],
        ))
        components.setdefault("milestones", MilestoneReleaseService(
            components["broadcaster"], milestones=[], store=store("milestones"), clock=clock,
        ))
        security = components.setdefault("security", VotingSecurityService(
            token_contract=components["token"], store=store("identities"), clock=clock,
        ))
        components.setdefault("governance", GovernanceManager(
            security, token_contract=components["token"], store=store("governance"), clock=clock,
        ))
        return GRLKRASHAgent(components=components, clock=clock, sleep=clock.sleep)
    return make


def fake_response(status_code=200, json_data=None, content=b"", headers=None):
    response = SimpleNamespace(status_code=status_code, content=content, headers=headers or {})
    response.json = MagicMock(return_value=json_data if json_data is not None else {})
    if status_code >= 400:
        response.raise_for_status = MagicMock(side_effect=requests.HTTPError(str(status_code)))
    else:
        response.raise_for_status = MagicMock()
    return response


class FakeHTTP:
    """Replaces requests.get/post/head; answers by URL, unknown URLs fail to connect.

    A list of responses for a URL is served one per call.
    """

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if url not in self.routes:
            raise requests.ConnectionError(f"no route for {url}")
        response = self.routes[url]
        if isinstance(response, list):
            return response.pop(0)
        return response
