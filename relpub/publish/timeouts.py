from __future__ import annotations

# Per gh invocation (view, create, upload)
GH_ATTEMPT_TIMEOUT_SECONDS = 60.0

# Upper bound for one registry operation including every retry and backoff
GH_OPERATION_TIMEOUT_SECONDS = 3 * 60.0

# Transient-failure retry policy: delay = base * 2**n, capped
GH_RETRY_ATTEMPTS = 3
GH_RETRY_BASE_DELAY_SECONDS = 1.0
GH_RETRY_MAX_DELAY_SECONDS = 8.0
