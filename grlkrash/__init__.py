"""
GRLKRASHai
==========
Autonomous marketing agent for the $MORE token and Memory Crystal NFTs.

Usage:
    from grlkrash.agent import GRLKRASHAgent

    agent = GRLKRASHAgent()
    agent.run()
"""

__version__ = "0.3.0"
