"""Helpers for writing admin audit records."""
import logging

from flask import has_request_context, request

audit_logger = logging.getLogger('audit')


def log_action(action: str, entity_type: str, entity_id: str | None = None, details: dict | None = None) -> None:
    """Emit a best-effort audit record for an admin mutation."""
    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
        user_agent = (request.user_agent.string or '')[:255]

    audit_logger.info(
        '%s %s%s',
        action,
        entity_type,
        f' {entity_id}' if entity_id else '',
        extra={
            'action': action,
            'entity_type': entity_type,
            'entity_id': entity_id,
            'ip_address': ip_address,
            'user_agent': user_agent,
            'details': details or {},
        },
    )
