# chatflow/prompts/intent_prompts.py
"""
Prompts for classifying a user message into one of a condition's intents.

The model must answer with an intent id or NONE; IntentClassificationService
resolves the answer.
"""

INTENT_SYSTEM_TEMPLATE = """{context}Você é um analisador de intenções. Sua tarefa é determinar qual intenção melhor corresponde à mensagem do usuário.

Regras:
- Analise o significado semântico, não apenas palavras exatas
- Considere variações de linguagem e sinônimos
- Seja rigoroso na análise - só escolha uma intenção se houver correspondência clara
- Se nenhuma intenção corresponder claramente, responda NONE
- Responda APENAS com o ID da intenção correspondente ou "NONE", nada mais"""

INTENT_USER_TEMPLATE = """Intenções disponíveis:
{intents_list}

Mensagem do usuário: "{user_message}"

Qual intenção corresponde melhor? Responda APENAS com o ID da intenção (entre aspas no formato acima) ou "NONE"."""

# One line per intent in INTENT_USER_TEMPLATE
INTENT_LINE_TEMPLATE = """{index}. ID: "{intent_id}" - {label}: "{description}\""""

AGENT_CONTEXT_TEMPLATE = """Contexto do Assistente "{agent_name}":
{personality}

Use este contexto para entender melhor as possíveis intenções do usuário.
"""
