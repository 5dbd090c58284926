from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Enum as SQLEnum, Date, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from app.db.base import BaseModel
from app.models.shared.enums import AttendanceOrigin, AttendanceState, AttendanceStatus

class AttendanceRecord(BaseModel):
    """One attendance record per employee per calendar day."""
    __tablename__ = 'attendances'
    __table_args__ = (
        UniqueConstraint('employee_id', 'attendance_date', name='uq_attendance_employee_date'),
        Index('ix_attendances_attendance_date', 'attendance_date'),
        Index('ix_attendances_status', 'status'),
    )

    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False)
    attendance_date = Column(Date, nullable=False)
    origin = Column(SQLEnum(AttendanceOrigin), nullable=False, default=AttendanceOrigin.REALTIME)
    current_state = Column(SQLEnum(AttendanceState), nullable=False, default=AttendanceState.NOT_CHECKED_IN)
    status = Column(SQLEnum(AttendanceStatus), nullable=False, default=AttendanceStatus.PRESENT)

    # Lunch is a singleton per day
    lunch_start = Column(DateTime(timezone=True))
    lunch_end = Column(DateTime(timezone=True))
    lunch_duration_minutes = Column(Integer, default=0)

    total_working_minutes = Column(Integer, nullable=False, default=0)
    total_break_minutes = Column(Integer, nullable=False, default=0)

    # Manual marking
    check_in = Column(DateTime(timezone=True))
    check_out = Column(DateTime(timezone=True))
    notes = Column(Text)
    marked_by = Column(Integer, ForeignKey('users.id'))

    # Derived annotations
    is_late = Column(Boolean, default=False)
    late_minutes = Column(Integer, default=0)
    early_departure = Column(Boolean, default=False)
    early_minutes = Column(Integer, default=0)
    overtime_minutes = Column(Integer, default=0)

    # Relationships
    employee = relationship("Employee", back_populates="attendances")
    work_sessions = relationship(
        "WorkSession",
        back_populates="attendance",
        order_by="WorkSession.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    personal_breaks = relationship(
        "PersonalBreak",
        back_populates="attendance",
        order_by="PersonalBreak.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def open_work_session(self):
        return next((s for s in reversed(self.work_sessions) if s.check_out is None), None)

    @property
    def open_personal_break(self):
        return next((b for b in reversed(self.personal_breaks) if b.break_in is None), None)

    @property
    def lunch_open(self) -> bool:
        return self.lunch_start is not None and self.lunch_end is None

    @property
    def lunch_taken(self) -> bool:
        return self.lunch_start is not None

    def __repr__(self):
        return f"<AttendanceRecord employee={self.employee_id} date={self.attendance_date} state={self.current_state}>"


class WorkSession(BaseModel):
    __tablename__ = 'attendance_work_sessions'

    attendance_id = Column(Integer, ForeignKey('attendances.id', ondelete='CASCADE'), nullable=False, index=True)
    check_in = Column(DateTime(timezone=True), nullable=False)
    check_out = Column(DateTime(timezone=True))
    duration_minutes = Column(Integer, nullable=False, default=0)

    attendance = relationship("AttendanceRecord", back_populates="work_sessions")


class PersonalBreak(BaseModel):
    __tablename__ = 'attendance_personal_breaks'

    attendance_id = Column(Integer, ForeignKey('attendances.id', ondelete='CASCADE'), nullable=False, index=True)
    break_out = Column(DateTime(timezone=True), nullable=False)
    break_in = Column(DateTime(timezone=True))
    duration_minutes = Column(Integer, nullable=False, default=0)
    reason = Column(String(255))

    attendance = relationship("AttendanceRecord", back_populates="personal_breaks")
