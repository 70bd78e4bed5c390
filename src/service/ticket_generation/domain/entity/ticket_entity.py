from datetime import datetime
from decimal import Decimal
import secrets
from typing import Optional

import attrs
import orjson
from uuid_utils import UUID

from src.service.ticket_generation.domain.enum.ticket_state import TicketState


TICKET_CODE_BYTES = 16  # token_urlsafe(16) -> 22 URL-safe characters


def new_ticket_code() -> str:
    return secrets.token_urlsafe(TICKET_CODE_BYTES)


def build_qr_payload(*, ticket_code: str, event_id: int, ticket_type_id: int) -> str:
    return orjson.dumps(
        {'ticket_code': ticket_code, 'event_id': event_id, 'ticket_type_id': ticket_type_id}
    ).decode()


@attrs.define
class Ticket:
    job_id: UUID
    event_id: int
    guest_id: int
    ticket_type_id: int
    ticket_code: str
    qr_payload: str
    currency: str
    price: Decimal = Decimal('0')
    state: TicketState = TicketState.PENDING
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    artifact_url: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    rendered_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        *,
        job_id: UUID,
        event_id: int,
        guest_id: int,
        ticket_type_id: int,
        currency: str,
        price: Decimal = Decimal('0'),
        guest_name: Optional[str] = None,
        guest_email: Optional[str] = None,
        guest_phone: Optional[str] = None,
    ) -> 'Ticket':
        ticket_code = new_ticket_code()
        return cls(
            job_id=job_id,
            event_id=event_id,
            guest_id=guest_id,
            ticket_type_id=ticket_type_id,
            ticket_code=ticket_code,
            qr_payload=build_qr_payload(
                ticket_code=ticket_code, event_id=event_id, ticket_type_id=ticket_type_id
            ),
            currency=currency,
            price=price,
            guest_name=guest_name,
            guest_email=guest_email,
            guest_phone=guest_phone,
        )
