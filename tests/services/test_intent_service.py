# tests/services/test_intent_service.py
"""
Tests for intent classification and AI response generation on top of a
mocked GPTService.
"""
import pytest
from unittest.mock import Mock, AsyncMock

from chatflow.core.exceptions import GPTServiceError
from chatflow.models.flow_models import Intent
from chatflow.prompts import generation_prompts
from chatflow.services.ai_response_service import AgentProfile, AIResponseService, build_agent_directory
from chatflow.services.intent_service import IntentClassificationService, resolve_intent_answer


@pytest.fixture
def intents():
    return [
        Intent(id="buy", label="Comprar", description="Quer comprar um produto"),
        Intent(id="cancel", label="Cancelar", description="Quer cancelar um pedido"),
    ]


@pytest.fixture
def gpt_service():
    service = Mock()
    service.complete = AsyncMock(return_value="cancel")
    return service


# ===========================================
# ANSWER RESOLUTION
# ===========================================

@pytest.mark.unit
class TestResolveIntentAnswer:

    @pytest.mark.parametrize("answer,expected", [
        ("cancel", "cancel"),
        ('ID: "buy"', "buy"),
        ("2", "cancel"),
        ("Intenção 1.", "buy"),
        ("none", "none"),
        ("NONE - buy", "none"),
        ("", "none"),
        ("7", "none"),
        ("refund", "none"),
    ])
    def test_resolution(self, intents, answer, expected):
        assert resolve_intent_answer(answer, intents) == expected


# ===========================================
# CLASSIFICATION
# ===========================================

@pytest.mark.unit
class TestIntentClassificationService:

    async def test_classify_intent(self, gpt_service, intents):
        service = IntentClassificationService(gpt_service)

        result = await service.classify_intent("quero cancelar meu pedido", intents)

        assert result == "cancel"
        call = gpt_service.complete.await_args
        assert 'Mensagem do usuário: "quero cancelar meu pedido"' in call.args[0]
        assert '2. ID: "cancel" - Cancelar' in call.args[0]
        assert call.kwargs["temperature"] == 0.1
        assert call.kwargs["max_tokens"] == 50
        assert "analisador de intenções" in call.kwargs["system_prompt"]

    async def test_empty_utterance_skips_model(self, gpt_service, intents):
        service = IntentClassificationService(gpt_service)

        assert await service.classify_intent("  ", intents) == "none"
        assert await service.classify_intent("oi", []) == "none"
        gpt_service.complete.assert_not_awaited()

    async def test_agent_context_in_system_prompt(self, gpt_service, intents):
        profile = AgentProfile(agent_id="a1", agent_name="Lia", personality="Atende uma loja de roupas.")
        service = IntentClassificationService(gpt_service, agent_profiles={"a1": profile})

        system_prompt, _ = service.build_prompts("oi", intents, agent_ref="a1")

        assert system_prompt.startswith('Contexto do Assistente "Lia"')
        assert "Atende uma loja de roupas." in system_prompt

    async def test_classify_intent_uses_referenced_agent(self, gpt_service, intents):
        directory = {"agent-7": AgentProfile(agent_id="agent-7", agent_name="Bia", personality="Vende planos.")}
        service = IntentClassificationService(gpt_service, agent_profiles=directory)

        await service.classify_intent("quero cancelar", intents, agent_ref="agent-7")

        assert 'Contexto do Assistente "Bia"' in gpt_service.complete.await_args.kwargs["system_prompt"]

    async def test_unknown_agent_classifies_without_context(self, gpt_service, intents):
        service = IntentClassificationService(gpt_service)

        system_prompt, _ = service.build_prompts("oi", intents, agent_ref="missing")

        assert system_prompt.startswith("Você é um analisador de intenções")

    async def test_model_errors_propagate(self, gpt_service, intents):
        gpt_service.complete.side_effect = GPTServiceError("down")
        service = IntentClassificationService(gpt_service)

        with pytest.raises(GPTServiceError):
            await service.classify_intent("oi", intents)


# ===========================================
# RESPONSE GENERATION
# ===========================================

@pytest.mark.unit
class TestAIResponseService:

    async def test_default_system_prompt(self, gpt_service):
        gpt_service.complete.return_value = "Olá!"
        service = AIResponseService(gpt_service)

        reply = await service.generate("Diga oi", max_tokens=100)

        assert reply == "Olá!"
        gpt_service.complete.assert_awaited_once_with(
            "Diga oi",
            system_prompt=generation_prompts.DEFAULT_SYSTEM_PROMPT,
            max_tokens=100
        )

    async def test_registered_agent_persona(self, gpt_service):
        service = AIResponseService(gpt_service)
        service.register_agent(AgentProfile(agent_id="a1", agent_name="Lia", personality="Fala de moda."))

        await service.generate("Oi", agent_ref="a1")

        system_prompt = gpt_service.complete.await_args.kwargs["system_prompt"]
        assert system_prompt.startswith('Você é o assistente "Lia".')
        assert "Fala de moda." in system_prompt

    def test_unknown_agent_falls_back_to_default(self, gpt_service):
        service = AIResponseService(gpt_service)

        assert service.build_system_prompt("missing") == generation_prompts.DEFAULT_SYSTEM_PROMPT


# ===========================================
# AGENT DIRECTORY
# ===========================================

@pytest.mark.unit
class TestAgentDirectory:

    def test_builds_profiles_from_records(self):
        directory = build_agent_directory([
            {"id": "agent-1", "name": "Lia", "personality": "Fala de moda."},
            {"agent_id": "agent-2", "agent_name": "Bia"},
        ])

        assert directory["agent-1"] == AgentProfile(agent_id="agent-1", agent_name="Lia", personality="Fala de moda.")
        assert directory["agent-2"].agent_name == "Bia"
        assert directory["agent-2"].personality == ""

    def test_skips_records_without_id(self):
        directory = build_agent_directory([{"name": "Sem id"}, {"id": "agent-1"}])

        assert list(directory) == ["agent-1"]
        assert directory["agent-1"].agent_name == "agent-1"

    async def test_services_share_one_directory(self, gpt_service, intents):
        directory = {}
        generator = AIResponseService(gpt_service, agent_profiles=directory)
        classifier = IntentClassificationService(gpt_service, agent_profiles=directory)

        generator.register_agent(AgentProfile(agent_id="a1", agent_name="Lia"))
        system_prompt, _ = classifier.build_prompts("oi", intents, agent_ref="a1")

        assert system_prompt.startswith('Contexto do Assistente "Lia"')
