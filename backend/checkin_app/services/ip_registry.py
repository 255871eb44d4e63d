"""IP presence registration service."""
import logging
from datetime import datetime
from typing import Optional, Tuple
from sqlalchemy.exc import IntegrityError
from checkin_app import db
from checkin_app.models.ip_registration import IPRegistration

logger = logging.getLogger(__name__)

class IPRegistry:
    """Tracks which client IPs have been seen.

    An IP is marked verified the moment it is first seen. This is presence
    tracking, not strong verification.
    """
    
    @staticmethod
    def lookup(ip_address: str) -> Optional[IPRegistration]:
        return IPRegistration.query.filter_by(ip_address=ip_address).first()
    
    @staticmethod
    def _touch(record: IPRegistration, user_agent: Optional[str]) -> None:
        record.last_seen = datetime.utcnow()
        record.visit_count = (record.visit_count or 0) + 1
        if user_agent:
            record.user_agent = user_agent
    
    @staticmethod
    def register(ip_address: str, user_agent: Optional[str] = None) -> Tuple[IPRegistration, bool]:
        """Find-or-create the registration. Returns (record, first_visit)."""
        record = IPRegistry.lookup(ip_address)
        if record is not None:
            IPRegistry._touch(record, user_agent)
            db.session.commit()
            return record, False
        
        now = datetime.utcnow()
        record = IPRegistration(
            ip_address=ip_address,
            first_seen=now,
            last_seen=now,
            visit_count=1,
            is_verified=True,
            user_agent=user_agent
        )
        db.session.add(record)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            record = IPRegistry.lookup(ip_address)
            IPRegistry._touch(record, user_agent)
            db.session.commit()
            return record, False
        
        logger.info("Registered new IP %s", ip_address)
        return record, True
    
    @staticmethod
    def status(ip_address: str) -> dict:
        record = IPRegistry.lookup(ip_address)
        return {
            'ip': ip_address,
            'exists': record is not None,
            'isVerified': bool(record and record.is_verified),
            'visitCount': record.visit_count if record else 0
        }
