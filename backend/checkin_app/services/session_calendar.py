"""Session calendar: maps wall-clock time to attendance sessions."""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Optional
from zoneinfo import ZoneInfo

@dataclass(frozen=True)
class SessionWindow:
    """Half-open interval [start, end) in fractional hours of the day."""
    session: str
    start: float
    end: float
    label: str
    
    def contains(self, hour: float) -> bool:
        return self.start <= hour < self.end

SESSION0 = 'session0'

SESSION_TIMES: Dict[str, SessionWindow] = {
    'session0': SessionWindow('session0', 0, 8, '12:00 AM - 8:00 AM'),
    'session1': SessionWindow('session1', 8, 9.5, '8:00 AM - 9:30 AM'),
    'session2': SessionWindow('session2', 9.5, 11, '9:30 AM - 11:00 AM'),
    'session3': SessionWindow('session3', 11, 12.5, '11:00 AM - 12:30 PM'),
    'session4': SessionWindow('session4', 12.5, 24, '12:30 PM - End of Day'),
}

SESSION_IDS = tuple(SESSION_TIMES)

# session0 only classifies legacy records; it never admits new check-ins
LIVE_SESSIONS = tuple(s for s in SESSION_IDS if s != SESSION0)

def fractional_hour(moment: datetime) -> float:
    """9:30 -> 9.5"""
    return (moment.hour
            + moment.minute / 60
            + (moment.second + moment.microsecond / 1_000_000) / 3600)

def session_label(session: str) -> str:
    return SESSION_TIMES[session].label

def is_valid_session(session: Optional[str]) -> bool:
    return isinstance(session, str) and session in SESSION_TIMES

class SessionCalendar:
    """Pure lookup of the session covering a moment.

    Naive datetimes are taken as wall-clock time in the calendar's zone.
    Aware datetimes are converted to that zone first (server local time
    when no zone is configured).
    """
    
    def __init__(self, timezone: Optional[str] = None):
        self.timezone = ZoneInfo(timezone) if timezone else None
    
    def localize(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            return moment
        return moment.astimezone(self.timezone)
    
    def session_for(self, now: datetime) -> Optional[str]:
        """Live session covering ``now`` or None before 8:00."""
        hour = fractional_hour(self.localize(now))
        for session in LIVE_SESSIONS:
            if SESSION_TIMES[session].contains(hour):
                return session
        return None
    
    def within_attendance_hours(self, now: datetime) -> bool:
        return self.session_for(now) is not None
    
    def classify_legacy(self, timestamp: datetime) -> str:
        """Session for a stored record lacking a session tag."""
        return self.session_for(timestamp) or SESSION0
    
    def day_of(self, moment: datetime) -> date:
        """Calendar day of ``moment`` in the attendance zone."""
        return self.localize(moment).date()
    
    def start_of_day(self, day: date) -> datetime:
        """Midnight of ``day`` in the attendance zone."""
        midnight = datetime(day.year, day.month, day.day)
        if self.timezone is not None:
            midnight = midnight.replace(tzinfo=self.timezone)
        return midnight
