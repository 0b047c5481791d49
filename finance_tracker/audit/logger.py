"""
Audit Logger

Every auth outcome and every ledger write is recorded as a typed
AuditEvent rendered to JSON by structlog. An expense insert and the
budget adjustment that follows it share one correlation id, so a total
that drifted can be traced back to the expense that caused it.

Writing an event never raises; a failed write is reported as False.
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """
    Route structlog output through the standard library at `level`.

    structlog renders the JSON; stdlib only decides what gets through.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Events are written to the structured local log, keyed by event type
    and severity.
    """

    def __init__(self, logger_name: str = "finance_tracker.audit"):
        self._logger = structlog.get_logger(logger_name)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written; never raises.
        """
        try:
            log_dict = event.to_log_dict()

            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Audit logging must not break the main flow
            logging.getLogger(__name__).warning("Failed to write audit event: %s", e)
            return False

        return True

    async def log_auth_failure(
        self,
        event_type: AuditEventType,
        email: str,
        error_kind: str,
        error_message: Optional[str],
    ) -> None:
        """Log a failed sign-up, sign-in, code check or resend."""
        await self.log(AuditEventBuilder.auth_failed(
            event_type=event_type,
            email=email,
            error_kind=error_kind,
            error_message=error_message,
        ))

    async def log_budget_out_of_sync(
        self,
        budget_id: str,
        column: str,
        delta: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a budget total that could not follow its expenses."""
        await self.log(AuditEventBuilder.budget_out_of_sync(
            budget_id=budget_id,
            column=column,
            delta=delta,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., recording an expense).
    Pass it through all subsequent operations.
    """
    return uuid4()
