"""Redemption tickets: offline issuance and verification at the point of sale."""

import hashlib
import hmac
import json
import logging
from collections.abc import Mapping
from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Union

from ecdsa import BadSignatureError, SigningKey, VerifyingKey
from ecdsa.util import MalformedSignature, sigdecode_string, sigencode_string_canonize

from core.errors import (
    DealError,
    InvalidInputError,
    InvalidTicketFormatError,
    TicketExpiredError,
)
from core.result import OperationResult
from core.types import DealRecord, RedemptionTicket, VerifiedRedemption

logger = logging.getLogger(__name__)

DEFAULT_TICKET_TTL = timedelta(hours=24)

DIGEST_PREFIX = "sha256:"
ECDSA_PREFIX = "ecdsa:"

# Wire field -> ticket attribute
_STRING_FIELDS = {
    "dealId": "deal_id",
    "dealTitle": "deal_title",
    "merchant": "merchant",
    "discountPrice": "discount_price",
    "expiryDate": "expiry_date",
    "redemptionType": "redemption_type",
}
_TIME_FIELDS = {
    "ticketIssuedAt": "issued_at",
    "expiresAt": "expires_at",
}
SIGNATURE_FIELD = "signaturePayload"

TicketInput = Union[RedemptionTicket, Mapping, str, bytes]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def _parse_time(value: Any, field_name: str) -> datetime:
    if not isinstance(value, str):
        raise InvalidTicketFormatError(f"Field {field_name} must be an ISO timestamp")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidTicketFormatError(f"Field {field_name} is not an ISO timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _end_of_day(expiry_date: str) -> datetime:
    """Last instant of a YYYY-MM-DD date in UTC."""
    try:
        day = date.fromisoformat(expiry_date)
    except ValueError:
        raise InvalidInputError(f"Expiry date must be YYYY-MM-DD, got {expiry_date!r}")
    return datetime.combine(day + timedelta(days=1), time.min, tzinfo=timezone.utc)


def ticket_to_document(ticket: RedemptionTicket) -> Dict[str, str]:
    """Render a ticket as its camelCase wire document."""
    document = {wire: getattr(ticket, attr) for wire, attr in _STRING_FIELDS.items()}
    for wire, attr in _TIME_FIELDS.items():
        document[wire] = _format_time(getattr(ticket, attr))
    document[SIGNATURE_FIELD] = ticket.signature_payload
    return document


def ticket_from_document(document: Mapping) -> RedemptionTicket:
    """Parse a wire document.

    Raises:
        InvalidTicketFormatError: If a field is missing or has the wrong type
    """
    if not isinstance(document, Mapping):
        raise InvalidTicketFormatError("Ticket must be a JSON object")

    values: Dict[str, Any] = {}
    for wire, attr in _STRING_FIELDS.items():
        value = document.get(wire)
        if not isinstance(value, str):
            raise InvalidTicketFormatError(f"Missing or invalid field: {wire}")
        values[attr] = value
    for wire, attr in _TIME_FIELDS.items():
        values[attr] = _parse_time(document.get(wire), wire)

    signature = document.get(SIGNATURE_FIELD)
    if not isinstance(signature, str) or not signature:
        raise InvalidTicketFormatError(f"Missing or invalid field: {SIGNATURE_FIELD}")

    return RedemptionTicket(signature_payload=signature, **values)


def ticket_to_json(ticket: RedemptionTicket) -> str:
    """Serialize a ticket for a QR code."""
    return json.dumps(ticket_to_document(ticket))


def canonical_bytes(ticket: RedemptionTicket) -> bytes:
    """Bytes covered by the signature: every field except the signature itself."""
    document = ticket_to_document(ticket)
    del document[SIGNATURE_FIELD]
    return json.dumps(document, sort_keys=True, separators=(",", ":")).encode()


class RedemptionTicketing:
    """Issues and verifies signed, time-boxed redemption tickets.

    Without a signing key the signature payload is a SHA-256 digest, which
    detects accidental corruption only. With a secp256k1 key, tickets carry a
    deterministic ECDSA signature and digest-only tickets are rejected.
    """

    def __init__(
        self,
        signing_key: Optional[SigningKey] = None,
        ttl: timedelta = DEFAULT_TICKET_TTL,
        clock: Optional[Callable[[], datetime]] = None,
        verifying_key: Optional[VerifyingKey] = None,
    ):
        """Initialize ticketing.

        Args:
            signing_key: Issuer key; enables ECDSA signatures
            ttl: Maximum ticket lifetime
            clock: Returns the current UTC time
            verifying_key: Verify-only key for scanners that cannot issue
        """
        if ttl <= timedelta(0):
            raise InvalidInputError("Ticket lifetime must be positive")
        self.signing_key = signing_key
        self.verifying_key = verifying_key or (signing_key.get_verifying_key() if signing_key else None)
        self.ttl = ttl
        self.clock = clock or _utcnow

    def issue(self, deal: DealRecord) -> OperationResult[RedemptionTicket]:
        """Package a deal into a signed ticket. No ledger access.

        Args:
            deal: Deal fields to carry on the ticket

        Returns:
            OperationResult with the ticket; InvalidInput for missing fields
            or a deal that has already expired
        """
        try:
            ticket = self._build(deal)
        except DealError as e:
            logger.warning(f"Ticket not issued: {e}")
            return OperationResult.from_error(e)

        logger.info(f"Issued ticket for deal {ticket.deal_id} valid until {_format_time(ticket.expires_at)}")
        return OperationResult.ok(ticket)

    def verify(self, ticket: TicketInput) -> OperationResult[VerifiedRedemption]:
        """Check a scanned ticket's format, signature and expiry.

        Args:
            ticket: RedemptionTicket, wire document, or its JSON text

        Returns:
            OperationResult with the VerifiedRedemption. Verification has no
            side effects; a ticket stays valid until it expires.
        """
        try:
            parsed = self._coerce(ticket)
            if not self._signature_matches(parsed):
                raise InvalidTicketFormatError("Ticket signature does not match its contents")

            now = self.clock()
            if parsed.expires_at <= now:
                raise TicketExpiredError(f"Ticket expired at {_format_time(parsed.expires_at)}")
        except DealError as e:
            logger.warning(f"Ticket rejected ({e.kind.value}): {e}")
            return OperationResult.from_error(e)

        logger.info(f"Verified ticket for deal {parsed.deal_id}")
        return OperationResult.ok(VerifiedRedemption(
            deal_id=parsed.deal_id,
            deal_title=parsed.deal_title,
            merchant=parsed.merchant,
            discount_price=parsed.discount_price,
            verified_at=now,
            signature_payload=parsed.signature_payload,
        ))

    def _build(self, deal: DealRecord) -> RedemptionTicket:
        if not deal.deal_id or not deal.title:
            raise InvalidInputError("Deal id and title are required")

        issued_at = self.clock().replace(microsecond=0)
        expires_at = issued_at + self.ttl
        if deal.expiry_date:
            expires_at = min(expires_at, _end_of_day(deal.expiry_date))
        if expires_at <= issued_at:
            raise InvalidInputError(f"Deal {deal.deal_id} expired on {deal.expiry_date}")

        unsigned = RedemptionTicket(
            deal_id=str(deal.deal_id),
            deal_title=deal.title,
            merchant=deal.merchant or "",
            discount_price=str(deal.deal_price),
            expiry_date=deal.expiry_date or "",
            redemption_type=deal.redemption_type or "QR",
            issued_at=issued_at,
            expires_at=expires_at,
            signature_payload="",
        )
        return replace(unsigned, signature_payload=self._sign(unsigned))

    def _coerce(self, ticket: TicketInput) -> RedemptionTicket:
        if isinstance(ticket, RedemptionTicket):
            return ticket
        if isinstance(ticket, (str, bytes)):
            try:
                ticket = json.loads(ticket)
            except ValueError as e:
                raise InvalidTicketFormatError(f"Ticket is not valid JSON: {e}")
        return ticket_from_document(ticket)

    def _sign(self, ticket: RedemptionTicket) -> str:
        digest = hashlib.sha256(canonical_bytes(ticket)).digest()
        if self.signing_key is None:
            return DIGEST_PREFIX + digest.hex()

        signature = self.signing_key.sign_digest_deterministic(
            digest,
            hashfunc=hashlib.sha256,
            sigencode=sigencode_string_canonize
        )
        return ECDSA_PREFIX + signature.hex()

    def _signature_matches(self, ticket: RedemptionTicket) -> bool:
        payload = ticket.signature_payload
        digest = hashlib.sha256(canonical_bytes(ticket)).digest()

        if self.verifying_key is None:
            if not payload.startswith(DIGEST_PREFIX):
                return False
            return hmac.compare_digest(payload[len(DIGEST_PREFIX):], digest.hex())

        if not payload.startswith(ECDSA_PREFIX):
            return False
        try:
            signature = bytes.fromhex(payload[len(ECDSA_PREFIX):])
            return self.verifying_key.verify_digest(signature, digest, sigdecode=sigdecode_string)
        except (ValueError, BadSignatureError, MalformedSignature):
            return False
