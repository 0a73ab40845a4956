from .generator import ContentGenerator, Decision, extract_keywords, make_decision
from .ipfs import IPFSContentService

__all__ = ["ContentGenerator", "Decision", "IPFSContentService", "extract_keywords", "make_decision"]
