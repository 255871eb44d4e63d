"""Attendance location (geofence) model."""
from sqlalchemy.orm import validates
from checkin_app import db
from checkin_app.models.base import BaseModel

MIN_RADIUS_METERS = 10
MAX_RADIUS_METERS = 1000
DEFAULT_RADIUS_METERS = 100

class AttendanceLocation(BaseModel):
    """Named circular zone a check-in must fall inside."""
    
    __tablename__ = 'attendance_locations'
    
    name = db.Column(db.String(100), nullable=False)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    radius_meters = db.Column(db.Integer, nullable=False, default=DEFAULT_RADIUS_METERS)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    
    __table_args__ = (
        db.CheckConstraint(
            f'radius_meters >= {MIN_RADIUS_METERS} AND radius_meters <= {MAX_RADIUS_METERS}',
            name='ck_location_radius_range'
        ),
    )
    
    @validates('radius_meters')
    def validate_radius(self, key, value):
        if value is None or not MIN_RADIUS_METERS <= value <= MAX_RADIUS_METERS:
            raise ValueError(
                f"Radius must be between {MIN_RADIUS_METERS} and {MAX_RADIUS_METERS} meters"
            )
        return value
    
    @validates('latitude')
    def validate_latitude(self, key, value):
        if not -90 <= value <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        return value
    
    @validates('longitude')
    def validate_longitude(self, key, value):
        if not -180 <= value <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        return value
    
    @classmethod
    def active(cls) -> list:
        """Snapshot of active locations in enumeration order."""
        return cls.query.filter_by(is_active=True).order_by(cls.id).all()
    
    def __repr__(self):
        return f'<AttendanceLocation {self.name}>'
