# chatflow/prompts/transcript_prompts.py
"""
Texts of the transcript entries the interpreter emits.

Flows are authored in Portuguese, so the preview transcript is too.
"""

# ============================================================================
# FLOW LIFECYCLE
# ============================================================================

FLOW_STARTED = "🚀 Fluxo iniciado"

FLOW_ENDED = "✅ Fluxo finalizado"

NO_START_NODE = "⚠️ Nenhum nó de início encontrado no fluxo."

NO_START_EDGE = "⚠️ Nenhuma conexão a partir do início."

NODE_NOT_FOUND = "⚠️ Nó não encontrado: {node_id}"

FLOW_INTERRUPTED = "⚠️ Fluxo interrompido - nenhuma conexão encontrada."

STEP_BUDGET_EXCEEDED = "⚠️ Limite de {max_steps} passos atingido - possível ciclo no fluxo."

UNKNOWN_NODE = "⚠️ Tipo de nó desconhecido: {kind}"

# ============================================================================
# MESSAGES & QUESTIONS
# ============================================================================

MESSAGE_NOT_CONFIGURED = "Mensagem não configurada"

QUESTION_NOT_CONFIGURED = "Pergunta não configurada"

MESSAGE_DELAY = "⏱️ Aguardando {seconds}s..."

# ============================================================================
# CONDITIONS
# ============================================================================

CONDITION_RESULT = "🔀 Condição avaliada: {result}"

CONDITION_TRUE = "Verdadeiro"

CONDITION_FALSE = "Falso"

CONDITION_PATH_MISSING = "⚠️ Caminho \"{path}\" não conectado."

AI_CONDITION_SIMULATED = "🤖 Condição IA (simulado para teste)"

AI_CONDITION_RESULT = "🤖 Intenção identificada: {intent}"

AI_CONDITION_NO_MATCH = "🤖 Nenhuma intenção identificada"

AI_CONDITION_FAILED = "⚠️ Falha na classificação de intenção: {error}"

# ============================================================================
# ACTIONS
# ============================================================================

ACTION_ADD_TAG = "🏷️ Tag adicionada: {tag}"

ACTION_REMOVE_TAG = "🏷️ Tag removida: {tag}"

ACTION_SET_VARIABLE = "📝 Variável definida: {name} = {value}"

ACTION_SET_VARIABLE_SKIPPED = "📝 Variável não definida: nome ou valor ausente"

ACTION_TRANSFER = "👤 Transferido para atendente humano"

ACTION_MOVE_FUNNEL = "📊 Movido para funil: {funnel}"

ACTION_NOTIFICATION = "🔔 Notificação enviada"

ACTION_NOTIFICATION_MESSAGE = "🔔 Notificação enviada: {message}"

ACTION_WEBHOOK = "🌐 Webhook chamado: {url}"

ACTION_UNKNOWN = "⚙️ Ação desconhecida: {action_type}"

ACTION_FAILED = "⚠️ Falha na ação {action_type}: {error}"

NOT_AVAILABLE = "N/A"

# ============================================================================
# DELAY & AI RESPONSE
# ============================================================================

DELAY = "⏳ Delay: {duration}{unit} (simulado)"

AI_GENERATING = "🤖 Gerando resposta IA (simulado)..."

AI_SIMULATED_RESPONSE = "[Resposta IA simulada]\n{text}"

AI_DEFAULT_PROMPT = "Resposta padrão da IA"

AI_FAILED = "⚠️ Falha ao gerar resposta IA: {error}"
