import random

import pytest

from grlkrash.community import CommunityEngagementService
from grlkrash.community.engagement import CHALLENGE_TEMPLATES, MAX_QUEUE_SIZE


@pytest.fixture
def executed():
    return []


@pytest.fixture
def community(executed, store):
    return CommunityEngagementService(executor=executed.append, store=store("community"), rng=random.Random(1))


def test_priority_from_metrics(community):
    assert community.calculate_priority("twitter", "like") == pytest.approx(0.75)
    assert community.calculate_priority("twitter", "challenge") == pytest.approx(1.2)


def test_queue_orders_by_priority_fifo_within_ties(community):
    first = community.queue_community_action("twitter", "like", 1)
    challenge = community.queue_community_action("twitter", "challenge", 2)
    second = community.queue_community_action("twitter", "like", 3)
    assert community.queue == [challenge, first, second]


def test_queue_rejects_unknown_type(community):
    with pytest.raises(ValueError):
        community.queue_community_action("twitter", "retweet", 1)


def test_queue_is_capped(community):
    for i in range(MAX_QUEUE_SIZE + 5):
        community.queue_community_action("twitter", "like", i)
    assert len(community.queue) == MAX_QUEUE_SIZE


def test_process_updates_metrics(community, executed):
    community.queue_community_action("twitter", "like", "42")
    assert community.process_action_queue() == (1, 0)
    assert executed[0].target_id == "42"

    metrics = community.get_metrics("twitter")
    assert metrics["interactions"] == 1
    assert metrics["response_rate"] == 1.0
    assert metrics["sentiment"] == pytest.approx(0.6)


def test_failures_lower_sentiment_and_continue(store):
    def executor(action):
        if action.target_id == "bad":
            raise RuntimeError("api down")

    community = CommunityEngagementService(executor=executor, store=store("community"))
    errors = []
    community.on("error", lambda e, ctx: errors.append(ctx))
    community.queue_community_action("twitter", "like", "bad")
    community.queue_community_action("twitter", "like", "good")

    assert community.process_action_queue() == (1, 1)
    assert errors == ["process_action_queue"]
    assert community.queue == []


def test_metrics_persist(community, store):
    community.update_metrics("discord", True)
    reloaded = CommunityEngagementService(store=store("community"))
    assert reloaded.get_metrics("discord")["interactions"] == 1


def test_challenge_prompt(community):
    prompts = []
    community.on("challenge_generated", lambda platform, prompt: prompts.append(prompt))
    prompt = community.generate_challenge_prompt("tiktok")
    assert prompt in [t.format(sentiment="engaging") for t in CHALLENGE_TEMPLATES]
    assert prompts == [prompt]


def test_excited_when_sentiment_high(community):
    for _ in range(3):
        community.update_metrics("tiktok", True)
    community.rng = random.Random(0)
    community.rng.choice = lambda seq: seq[0]
    assert "excited" in community.generate_challenge_prompt("tiktok")
