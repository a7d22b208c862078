"""Pure booking rules: overlap, pricing, refund policy, recurrence."""
