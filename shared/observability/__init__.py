from .setup import setup_observability
from .metrics import (
    market_checkout_total,
    market_checkout_duration_seconds,
    market_order_status_transitions_total,
    market_reconciled_items_total,
    market_payment_verifications_total,
    market_assistant_fallback_total,
    market_llm_tokens_total,
)
