"""Identity deduplication ledger."""
import logging
from datetime import date
from typing import Optional
from sqlalchemy.exc import IntegrityError
from checkin_app import db
from checkin_app.models.identity_ledger import IdentityLedgerEntry
from checkin_app.models.student import normalize_email
from checkin_app.utils.errors import LedgerConflict

logger = logging.getLogger(__name__)

class IdentityLedger:
    """Append-only record of (identity, session, day) tuples already used.

    Both composite keys are unique in storage, so two racing requests that
    pass the read checks still collide on insert.
    """
    
    @staticmethod
    def find_device_entry(ip_address: str, device_fingerprint: str,
                          session: str, day: date) -> Optional[IdentityLedgerEntry]:
        return IdentityLedgerEntry.query.filter_by(
            ip_address=ip_address,
            device_fingerprint=device_fingerprint,
            session=session,
            day=day
        ).first()
    
    @staticmethod
    def has_device_entry(ip_address: str, device_fingerprint: str,
                         session: str, day: date) -> bool:
        return IdentityLedger.find_device_entry(
            ip_address, device_fingerprint, session, day
        ) is not None
    
    @staticmethod
    def has_email_entry(email: str, session: str, day: date) -> bool:
        return IdentityLedgerEntry.query.filter_by(
            email=normalize_email(email),
            session=session,
            day=day
        ).first() is not None
    
    @staticmethod
    def record(ip_address: str, device_fingerprint: str, session: str,
               day: date, email: str) -> IdentityLedgerEntry:
        """Insert and commit one entry.

        Raises LedgerConflict when either composite key already exists.
        """
        entry = IdentityLedgerEntry(
            ip_address=ip_address,
            device_fingerprint=device_fingerprint,
            session=session,
            day=day,
            email=normalize_email(email)
        )
        db.session.add(entry)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            logger.info("Ledger conflict for %s in %s on %s", entry.email, session, day)
            raise LedgerConflict(str(exc.orig)) from exc
        return entry
