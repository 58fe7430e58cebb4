# chatflow/prompts/__init__.py
"""Prompt and transcript text catalog used by the PromptManager"""

from . import transcript_prompts
from . import intent_prompts
from . import generation_prompts

__all__ = [
    'transcript_prompts',
    'intent_prompts',
    'generation_prompts',
]
