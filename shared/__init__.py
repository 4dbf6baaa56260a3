"""
Shared module for common utilities across the core and the WS Gateway.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: PaymentMode, TableStatus, ErrorCode, enums

- shared.infrastructure: Cross-cutting runtime helpers
  - correlation.py: Per-event correlation ids for logging

- shared.utils: Utilities
  - exceptions.py: Domain exceptions with error codes and auto-logging

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.constants import PaymentMode, TableStatus
    from shared.utils.exceptions import GuestNotFoundError, TableFullError
"""
