# backend/checkin_app/services/student_service.py
"""Student management service."""
import logging
from dataclasses import replace
from typing import List, Optional, Tuple
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from checkin_app import db
from checkin_app.models.attendance import AttendanceRecord
from checkin_app.models.student import Student, normalize_email
from checkin_app.services.session_calendar import is_valid_session

logger = logging.getLogger(__name__)

class StudentService:
    """Service for finding, creating and updating students."""
    
    @staticmethod
    def find_by_email(email: str, for_update: bool = False) -> Optional[Student]:
        query = Student.query.filter_by(email=normalize_email(email))
        if for_update:
            query = query.with_for_update()
        return query.first()
    
    @staticmethod
    def append_attendance(
        email: str,
        name: str,
        specialty: str,
        major: str,
        record: AttendanceRecord
    ) -> Student:
        """Find-or-create the student by email, refresh the profile and append a record.

        A concurrent first check-in for the same email can win the insert;
        in that case the existing row is reloaded and the record appended to it.
        """
        email = normalize_email(email)
        student = StudentService.find_by_email(email, for_update=True)
        
        if student is None:
            student = Student(email=email, name=name, specialty=specialty,
                              major=major, attendance_records=[])
            student.append_record(record)
            db.session.add(student)
            try:
                db.session.commit()
                logger.info("Created student %s", email)
                return student
            except IntegrityError:
                db.session.rollback()
                student = StudentService.find_by_email(email, for_update=True)
                if student is None:
                    raise
        
        student.refresh_profile(name, specialty, major)
        student.append_record(record)
        db.session.commit()
        return student
    
    @staticmethod
    def list_students(specialty: str = None, major: str = None,
                      search: str = None) -> List[Student]:
        """List students, newest first, filtered by specialty, major or search text."""
        query = Student.query
        
        if specialty:
            query = query.filter(Student.specialty == specialty)
        if major:
            query = query.filter(Student.major == major)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Student.name.ilike(pattern),
                Student.email.ilike(pattern)
            ))
        
        return query.order_by(Student.created_at.desc(), Student.id.desc()).all()
    
    @staticmethod
    def retag_legacy_records(calendar) -> Tuple[int, int]:
        """Assign a session to stored records that lack a valid one.

        Returns (students_updated, records_fixed).
        """
        students_updated = 0
        records_fixed = 0
        
        for student in Student.query.all():
            fixed = []
            for raw in student.attendance_records or []:
                if is_valid_session(raw.get('session')):
                    fixed.append(raw)
                    continue
                record = AttendanceRecord.from_dict(raw)
                fixed.append(replace(record, session=calendar.classify_legacy(record.timestamp)).to_dict())
                records_fixed += 1
            
            if fixed != list(student.attendance_records or []):
                student.attendance_records = fixed
                students_updated += 1
        
        db.session.commit()
        logger.info("Re-tagged %d legacy records for %d students", records_fixed, students_updated)
        return students_updated, records_fixed
