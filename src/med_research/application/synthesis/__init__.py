"""
Answer synthesis boundary.
"""

from .answer_synthesizer import AnswerSynthesizer, CompletionClient

__all__ = ["AnswerSynthesizer", "CompletionClient"]
