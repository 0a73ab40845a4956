"""
ContentGenerator - mention triage and OpenAI replies
====================================================
Decides what to do with a mention (meme > shill > create > ignore), builds
the persona prompt and asks the LLM for the text.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from openai import OpenAI

from .. import config
from ..retry import retry

logger = logging.getLogger("Content")

FALLBACK_RESPONSE = "// Unable to generate response //"
KEYWORDS = ["meme", "shill", "$MORE", "create", "perseverance", "build", "happy"]

POST_MEME = "POST_MEME"
POST_SHILL = "POST_SHILL"
POST_TEXT = "POST_TEXT"
IGNORE = "IGNORE"

DEFAULT_PERSONALITY = {
    "traits": {"confident": 0.8, "humble": 0.6, "adventurous": 0.9, "wise": 0.7},
    "voice": {"style": "playful", "tone": "enthusiastic", "formality": "casual"},
}

# (trait, adjective when > 0.7, adjective otherwise)
TRAIT_ADJECTIVES = [
    ("confident", "confident", "humble"),
    ("adventurous", "adventurous", "cautious"),
    ("wise", "wise", "playful"),
]


@dataclass
class Decision:
    action: str
    content: str = None
    image_key: str = None


def extract_keywords(text):
    if not text:
        return []
    lowered = text.lower()
    return [kw for kw in KEYWORDS if kw.lower() in lowered]


def make_decision(text):
    keywords = extract_keywords(text)

    if "meme" in keywords:
        image_key = "default_meme"
        if "perseverance" in keywords or "build" in keywords:
            image_key = "perseverance_meme"
        elif "happy" in keywords:
            image_key = "happy_meme"
        return Decision(POST_MEME, image_key=image_key)

    if "shill" in keywords or "$MORE" in keywords:
        return Decision(POST_SHILL)

    if "create" in keywords:
        return Decision(POST_TEXT)

    return Decision(IGNORE)


def build_prompt(text, username, keywords, personality=None):
    personality = personality or DEFAULT_PERSONALITY
    traits = personality["traits"]
    voice = personality["voice"]

    adjectives = [
        high if traits.get(trait, 0) > 0.7 else low
        for trait, high, low in TRAIT_ADJECTIVES
    ]
    adjectives += ["creative", "meme-aware"]

    user_context = f"@{username} mentioned you"
    if keywords:
        user_context += f" with keywords: {', '.join(keywords)}"

    if "meme" in keywords:
        instructions = "Create a witty, shareable response that would work well with a meme image."
    elif "shill" in keywords or "$MORE" in keywords:
        instructions = "Mention the $MORE token in an organic, enthusiastic way without being too salesy."
    elif "create" in keywords:
        instructions = "Be creative and artistic in your response, showcasing your AI artist persona."
    else:
        instructions = ""

    return (
        f"You are GRLKRASH, an AI artist who is {', '.join(adjectives)}.\n\n"
        f"Task: Generate a Twitter response (max 280 chars) to {user_context}.\n\n"
        f"Their mention: \"{text}\"\n\n"
        f"{instructions}\n\n"
        f"Respond in a {voice['style']} and {voice['tone']} tone, keeping it {voice['formality']}.\n\n"
        "Remember you're a quirky AI artist who mixes confidence with a touch of humility "
        "and loves creating shareable content."
    )


def meme_path(image_key, meme_dir=None):
    return Path(meme_dir or config.MEME_DIR) / f"{image_key}.png"


class ContentGenerator:
    MAX_TOKENS = 150
    TEMPERATURE = 0.7

    def __init__(self, client=None, model=None, personality=None, sleep=time.sleep):
        self.client = client or OpenAI(api_key=config.OPENAI_API_KEY)
        self.model = model or config.OPENAI_MODEL
        self.personality = personality or DEFAULT_PERSONALITY
        self.sleep = sleep

    def _complete(self, prompt):
        completion = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.MAX_TOKENS,
            temperature=self.TEMPERATURE,
        )
        text = completion.choices[0].message.content if completion.choices else None
        if not text:
            raise ValueError("OpenAI returned an empty response")
        return text.strip()

    def generate_text(self, prompt):
        """LLM completion, or FALLBACK_RESPONSE after three failed attempts."""
        preview = prompt if len(prompt) <= 50 else f"{prompt[:50]}..."
        logger.info(f"🧠 Generating response for: {preview}")
        try:
            return retry(3, lambda: self._complete(prompt), delay=1, sleep=self.sleep)
        except Exception as e:
            logger.error(f"❌ OpenAI generation failed: {e}")
            return FALLBACK_RESPONSE

    def process_mention(self, text, username):
        keywords = extract_keywords(text)
        decision = make_decision(text)
        logger.info(f"🎯 @{username}: {decision.action} (keywords: {', '.join(keywords) or 'none'})")

        if decision.action != IGNORE:
            prompt = build_prompt(text, username, keywords, self.personality)
            decision.content = self.generate_text(prompt)
        return decision
