from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Date
from sqlalchemy.orm import relationship
from app.db.base import BaseModel

class Employee(BaseModel):
    __tablename__ = 'employees'

    employee_code = Column(String(20), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), unique=True, nullable=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    department_id = Column(Integer, ForeignKey('departments.id'))
    designation = Column(String(100))
    date_of_joining = Column(Date)
    is_active = Column(Boolean, default=True)

    # Relationships
    user = relationship("User", back_populates="employee")
    department = relationship("Department", back_populates="employees")
    attendances = relationship("AttendanceRecord", back_populates="employee")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
