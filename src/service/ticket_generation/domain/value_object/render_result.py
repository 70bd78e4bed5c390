from datetime import datetime
from typing import Optional

import attrs

from src.service.ticket_generation.domain.enum.ticket_state import TicketState


@attrs.frozen
class RenderResultItem:
    """Renderer outcome for one ticket"""

    ticket_code: str
    state: TicketState
    artifact_url: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    qr_payload: Optional[str] = None  # Renderer may return the payload it actually encoded


@attrs.frozen
class TicketChange:
    """A ticket row moved out of `pending` by a result"""

    ticket_code: str
    state: TicketState
    changed_at: Optional[datetime] = None


@attrs.frozen
class TicketsSummary:
    rendered: int = 0
    pending: int = 0
    failed: int = 0
