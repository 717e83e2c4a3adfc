from prometheus_client import Counter, Histogram

# Business Metrics
market_checkout_total = Counter(
    "market_checkout_total",
    "Total checkouts processed",
    ["payment_method", "status"] # Labels: 'cash-on-delivery'/'stripe', 'success'/'failed'
)

market_checkout_duration_seconds = Histogram(
    "market_checkout_duration_seconds",
    "Order placement duration in seconds"
)

market_order_status_transitions_total = Counter(
    "market_order_status_transitions_total",
    "Order status transitions applied",
    ["from_status", "to_status"]
)

market_reconciled_items_total = Counter(
    "market_reconciled_items_total",
    "Order item lines processed by the reconciler",
    ["result"] # Labels: 'added', 'skipped'
)

market_payment_verifications_total = Counter(
    "market_payment_verifications_total",
    "Payment session verifications",
    ["result"] # Labels: 'created', 'existing', 'unpaid', 'error'
)

market_assistant_fallback_total = Counter(
    "market_assistant_fallback_total",
    "Assistant replies answered by the keyword knowledge base",
    ["reason"] # Labels: 'no_api_key', 'llm_error'
)

market_llm_tokens_total = Counter(
    "market_llm_tokens_total",
    "Total LLM tokens used",
    ["model", "type"] # Labels: type='prompt' or 'completion'
)
