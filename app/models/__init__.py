from app.models.auth.user import User
from app.models.organization.department import Department
from app.models.hr.employee import Employee
from app.models.hr.attendance import AttendanceRecord, WorkSession, PersonalBreak
