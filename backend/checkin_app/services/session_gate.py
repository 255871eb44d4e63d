"""Session gate: admin-controlled per-session enable flag."""
import logging
from dataclasses import dataclass
from typing import Dict, List
from sqlalchemy.exc import IntegrityError
from checkin_app import db
from checkin_app.models.session_control import SessionControl
from checkin_app.services.session_calendar import SESSION_IDS, is_valid_session, session_label
from checkin_app.utils.errors import InputError, ReasonCode

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = 'system'

@dataclass(frozen=True)
class GatePolicy:
    """How the gate treats a session with no stored record."""
    fail_open: bool = True
    
    @classmethod
    def from_config(cls, config) -> 'GatePolicy':
        return cls(fail_open=bool(config.get('SESSION_GATE_FAIL_OPEN', True)))

class SessionGate:
    """Reads and writes SessionControl records.

    A read that finds no record materialises one holding the policy default,
    so later reads are backed by an explicit row. Concurrent readers may race
    on that insert; the loser's uniqueness conflict is ignored.
    """
    
    def __init__(self, policy: GatePolicy = None):
        self.policy = policy or GatePolicy()
    
    @staticmethod
    def _validate(session: str) -> None:
        if not is_valid_session(session):
            raise InputError("Invalid session", reason_code=ReasonCode.INVALID_INPUT)
    
    @staticmethod
    def _lookup(session: str):
        return SessionControl.query.filter_by(session=session).first()
    
    def _materialize(self, session: str) -> bool:
        db.session.add(SessionControl(
            session=session,
            is_enabled=self.policy.fail_open,
            updated_by=SYSTEM_ACTOR
        ))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.debug("Session gate %s created concurrently", session)
            existing = self._lookup(session)
            if existing is not None:
                return existing.is_enabled
        return self.policy.fail_open
    
    def is_enabled(self, session: str) -> bool:
        self._validate(session)
        control = self._lookup(session)
        if control is None:
            return self._materialize(session)
        return control.is_enabled
    
    def set_enabled(self, session: str, enabled: bool, actor: str) -> SessionControl:
        self._validate(session)
        control = self._lookup(session)
        if control is None:
            control = SessionControl(session=session)
            db.session.add(control)
        control.is_enabled = enabled
        control.updated_by = actor
        db.session.commit()
        logger.info("Session %s %s by %s", session, 'enabled' if enabled else 'disabled', actor)
        return control
    
    def states(self) -> List[Dict]:
        """All five sessions, materialising any that are missing."""
        existing = {c.session: c for c in SessionControl.query.all()}
        missing = [s for s in SESSION_IDS if s not in existing]
        for session in missing:
            self._materialize(session)
        if missing:
            existing = {c.session: c for c in SessionControl.query.all()}
        
        result = []
        for session in SESSION_IDS:
            data = existing[session].to_dict()
            data['label'] = session_label(session)
            result.append(data)
        return result
