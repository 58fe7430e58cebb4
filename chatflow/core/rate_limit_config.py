# chatflow/core/rate_limit_config.py
"""
Rate limiting configuration for the chatflow preview API
"""

from fastapi import Request
from slowapi.util import get_remote_address


def get_real_ip(request: Request) -> str:
    """
    Get the real IP address, considering proxy headers.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


# Preview runs are cheap unless AI collaborators are enabled
RATE_LIMIT_TIERS = {
    "default": {
        "flow_test": "20/minute",       # New test runs
        "flow_step": "60/minute",       # Replies, options, resets
        "global": "200/minute"          # Overall API calls
    }
}

RATE_LIMIT_MESSAGES = {
    "default": "Muitas requisições. Aguarde um momento e tente novamente.",
    "flow_test": "Muitos testes iniciados. Aguarde um minuto.",
    "flow_step": "Muitas mensagens enviadas. Aguarde um pouco.",
}


def get_rate_limit_message(endpoint: str) -> str:
    """Get custom error message for rate limited endpoint"""
    return RATE_LIMIT_MESSAGES.get(endpoint, RATE_LIMIT_MESSAGES["default"])
