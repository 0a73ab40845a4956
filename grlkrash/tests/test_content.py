from types import SimpleNamespace

import pytest

from grlkrash.content import ContentGenerator, IPFSContentService, extract_keywords, make_decision
from grlkrash.content import ipfs as ipfs_module
from grlkrash.content.generator import FALLBACK_RESPONSE, IGNORE, POST_MEME, POST_SHILL, POST_TEXT, build_prompt
from grlkrash.errors import ContentNotFound

from .conftest import FakeHTTP, fake_response

CID = "QmcXG4L9nRQ31jKCViFV5CYXrzDnuWQ4zUrJyeTaF4FKqG"


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


def fake_openai(*replies):
    completions = FakeCompletions(replies)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_extract_keywords_case_insensitive():
    assert extract_keywords("Need a MEME about $more and Build") == ["meme", "$MORE", "build"]
    assert extract_keywords("") == []


@pytest.mark.parametrize("text,action,image_key", [
    ("meme please", POST_MEME, "default_meme"),
    ("meme about perseverance", POST_MEME, "perseverance_meme"),
    ("happy meme", POST_MEME, "happy_meme"),
    ("meme build happy", POST_MEME, "perseverance_meme"),
    ("shill me", POST_SHILL, None),
    ("what is $MORE", POST_SHILL, None),
    ("create something", POST_TEXT, None),
    ("gm", IGNORE, None),
])
def test_decision_priority(text, action, image_key):
    decision = make_decision(text)
    assert decision.action == action
    assert decision.image_key == image_key


def test_prompt_uses_traits_and_instructions():
    prompt = build_prompt("shill $MORE", "fan", ["shill", "$MORE"])
    assert "confident, adventurous, playful, creative, meme-aware" in prompt
    assert "@fan mentioned you with keywords: shill, $MORE" in prompt
    assert "Mention the $MORE token" in prompt
    assert "playful and enthusiastic tone, keeping it casual" in prompt


def test_generate_text_retries_then_succeeds():
    client, completions = fake_openai(RuntimeError("503"), "  gm fam  ")
    sleeps = []
    generator = ContentGenerator(client=client, model="gpt-test", sleep=sleeps.append)

    assert generator.generate_text("say gm") == "gm fam"
    assert sleeps == [1]
    assert completions.requests[0]["model"] == "gpt-test"
    assert completions.requests[0]["max_tokens"] == 150


def test_generate_text_fallback_after_three_failures():
    client, completions = fake_openai(RuntimeError("a"), RuntimeError("b"), "")
    generator = ContentGenerator(client=client, model="gpt-test", sleep=lambda s: None)
    assert generator.generate_text("say gm") == FALLBACK_RESPONSE
    assert len(completions.requests) == 3


def test_process_mention_ignore_skips_llm():
    client, completions = fake_openai()
    generator = ContentGenerator(client=client, model="gpt-test")
    decision = generator.process_mention("good morning", "fan")
    assert decision.action == IGNORE
    assert decision.content is None
    assert completions.requests == []


def test_process_mention_meme():
    client, _ = fake_openai("when the chart goes up")
    generator = ContentGenerator(client=client, model="gpt-test")
    decision = generator.process_mention("meme time, stay happy", "fan")
    assert decision.action == POST_MEME
    assert decision.image_key == "happy_meme"
    assert decision.content == "when the chart goes up"


def test_ipfs_falls_back_to_next_gateway_and_caches(monkeypatch):
    http = FakeHTTP({
        f"https://a.example/ipfs/{CID}": fake_response(504),
        f"https://b.example/ipfs/{CID}": fake_response(content=b"ID3audio"),
    })
    monkeypatch.setattr(ipfs_module.requests, "get", http)
    ipfs = IPFSContentService(gateways=["https://a.example/", "https://b.example"])

    assert ipfs.get_content(CID) == b"ID3audio"
    assert ipfs.get_content(CID) == b"ID3audio"
    assert len(http.calls) == 2


def test_ipfs_not_found(monkeypatch):
    http = FakeHTTP({f"https://a.example/ipfs/{CID}": fake_response(404)})
    monkeypatch.setattr(ipfs_module.requests, "get", http)
    with pytest.raises(ContentNotFound):
        IPFSContentService(gateways=["https://a.example"]).get_content(CID)


def test_ipfs_skips_unreachable_gateway(monkeypatch):
    http = FakeHTTP({f"https://b.example/ipfs/{CID}": fake_response(content=b"png")})
    monkeypatch.setattr(ipfs_module.requests, "get", http)
    ipfs = IPFSContentService(gateways=["https://a.example", "https://b.example"])
    assert ipfs.get_content(CID) == b"png"


def test_ipfs_cache_evicts_oldest():
    ipfs = IPFSContentService(gateways=["https://a.example"], cache_size=2)
    for cid in ("one", "two", "three"):
        ipfs._remember(cid, cid.encode())
    assert list(ipfs._cache) == ["two", "three"]


def test_ipfs_metrics(monkeypatch):
    http = FakeHTTP({
        f"https://a.example/ipfs/{CID}": fake_response(
            headers={"Content-Length": "4200", "Content-Type": "audio/mpeg"}
        ),
    })
    monkeypatch.setattr(ipfs_module.requests, "head", http)

    metrics = IPFSContentService(gateways=["https://a.example"]).get_content_metrics(CID)

    assert metrics == {
        "cid": CID,
        "url": f"https://a.example/ipfs/{CID}",
        "size": 4200,
        "content_type": "audio/mpeg",
    }
    assert http.calls[0][1]["allow_redirects"] is True


def test_ipfs_metrics_missing(monkeypatch):
    http = FakeHTTP({f"https://a.example/ipfs/{CID}": fake_response(404)})
    monkeypatch.setattr(ipfs_module.requests, "head", http)
    assert IPFSContentService(gateways=["https://a.example"]).get_content_metrics(CID) is None
