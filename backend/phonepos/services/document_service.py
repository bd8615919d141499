# Overview: Atomic allocation of human-readable document numbers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import DocumentSequence


SALE_DOCUMENT = "SALE"
PURCHASE_DOCUMENT = "PURCHASE"

DOCUMENT_PREFIXES = {
    SALE_DOCUMENT: "SALE",
    PURCHASE_DOCUMENT: "PO",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(document_type: str, *, pad: int = 6) -> str:
    """
    Allocate the next number for a document type, e.g. "SALE-000042".

    Must be called inside the caller's workflow transaction; a number is
    consumed only when that transaction commits.
    Two first-ever allocations racing on the insert surface as
    StaleDataError so run_with_retry() replays the whole workflow.
    """
    prefix = DOCUMENT_PREFIXES.get(document_type)
    if prefix is None:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        db.session.add(DocumentSequence(document_type=document_type, next_number=2))
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise StaleDataError(f"Concurrent first allocation for {document_type}") from exc
        next_num = 1

    return f"{prefix}-{next_num:0{pad}d}"


def ensure_sequence_floor(document_type: str, existing_numbers: list[str]) -> None:
    """
    Move a sequence past the highest number already in use.

    Restored documents keep their original numbers; without this the next
    allocation could hand one of them out again.
    """
    prefix = DOCUMENT_PREFIXES[document_type] + "-"
    highest = 0
    for number in existing_numbers:
        if number and number.startswith(prefix) and number[len(prefix):].isdigit():
            highest = max(highest, int(number[len(prefix):]))
    if not highest:
        return

    seq = db.session.query(DocumentSequence).filter_by(document_type=document_type).first()
    if seq is None:
        db.session.add(DocumentSequence(document_type=document_type, next_number=highest + 1))
    elif seq.next_number <= highest:
        seq.next_number = highest + 1
    db.session.flush()
