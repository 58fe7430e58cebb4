# chatflow/prompts/generation_prompts.py
"""
System prompts for AI response nodes.
"""

# Used when the node has a custom prompt or the linked agent is unknown
DEFAULT_SYSTEM_PROMPT = """Você é um assistente de atendimento via WhatsApp.
Responda de forma curta, cordial e objetiva, em português."""

# Used when the node links an existing agent profile
AGENT_SYSTEM_TEMPLATE = """Você é o assistente "{agent_name}".
{personality}

Responda de forma curta, cordial e objetiva, em português."""
