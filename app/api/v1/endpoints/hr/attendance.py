from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from datetime import date
from app.api.dependencies import get_attendance_service, get_current_employee, require_permission
from app.schemas.common.pagination import PaginatedResponse
from app.services.hr.attendance_service import AttendanceService
from app.schemas.hr.attendance_schema import (
    AttendanceMarkRequest,
    AttendanceResponse,
    AttendanceUpdateRequest,
    AttendanceWithEmployeeResponse,
    BreakStartRequest,
    BulkMarkRequest,
    BulkMarkResponse,
    EmployeeSummaryResponse,
    MonthlyReportResponse,
    MyStatusResponse,
)
from app.models.shared.enums import AttendanceStatus
from app.models.auth.user import User
from app.models.hr.employee import Employee

router = APIRouter()


# ---------- Self-service ----------
@router.get("/my-status", response_model=MyStatusResponse)
async def get_my_status(
    employee: Employee = Depends(get_current_employee),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Today's attendance for the signed-in employee"""
    return await service.get_my_status(employee)


@router.post("/check-in", response_model=AttendanceResponse)
async def check_in(
    employee: Employee = Depends(get_current_employee),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Start the working day"""
    return await service.check_in(employee)


@router.post("/check-out", response_model=AttendanceResponse)
async def check_out(
    employee: Employee = Depends(get_current_employee),
    service: AttendanceService = Depends(get_attendance_service)
):
    """End the working day"""
    return await service.check_out(employee)


@router.post("/lunch/start", response_model=AttendanceResponse)
async def start_lunch(
    employee: Employee = Depends(get_current_employee),
    service: AttendanceService = Depends(get_attendance_service)
):
    return await service.start_lunch(employee)


@router.post("/lunch/end", response_model=AttendanceResponse)
async def end_lunch(
    employee: Employee = Depends(get_current_employee),
    service: AttendanceService = Depends(get_attendance_service)
):
    return await service.end_lunch(employee)


@router.post("/break/start", response_model=AttendanceResponse)
async def start_break(
    payload: Optional[BreakStartRequest] = None,
    employee: Employee = Depends(get_current_employee),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Start a personal break, optionally with a reason"""
    return await service.start_break(employee, reason=payload.reason if payload else None)


@router.post("/break/end", response_model=AttendanceResponse)
async def end_break(
    employee: Employee = Depends(get_current_employee),
    service: AttendanceService = Depends(get_attendance_service)
):
    return await service.end_break(employee)


@router.get("/my-history", response_model=List[AttendanceResponse])
async def get_my_history(
    limit: int = Query(30, ge=1, le=366),
    employee: Employee = Depends(get_current_employee),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Most recent attendance records of the signed-in employee"""
    return await service.get_my_history(employee, limit=limit)


# ---------- Administration ----------
@router.get("/", response_model=PaginatedResponse[AttendanceWithEmployeeResponse])
async def get_attendance(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=1000),
    employee_id: Optional[int] = Query(None, alias="employee"),
    department_id: Optional[int] = Query(None, alias="department"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    status: Optional[AttendanceStatus] = Query(None),
    current_user: User = Depends(require_permission("attendance", "read")),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Get attendance records with filtering and pagination"""
    return await service.get_attendance(
        page_index=page_index,
        page_size=page_size,
        employee_id=employee_id,
        department_id=department_id,
        start_date=start_date,
        end_date=end_date,
        status=status
    )


@router.get("/monthly-report", response_model=MonthlyReportResponse)
async def get_monthly_report(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2020, le=2100),
    employee_id: Optional[int] = Query(None, alias="employee"),
    department_id: Optional[int] = Query(None, alias="department"),
    current_user: User = Depends(require_permission("report", "read")),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Monthly attendance with per-class totals"""
    return await service.get_monthly_report(month, year, employee_id=employee_id, department_id=department_id)


@router.get("/employee/{employee_id}/summary", response_model=EmployeeSummaryResponse)
async def get_employee_attendance_summary(
    employee_id: int,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2020, le=2100),
    current_user: User = Depends(require_permission("report", "read")),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Get employee attendance summary for a month"""
    return await service.get_employee_summary(employee_id, month, year)


@router.post("/bulk", response_model=BulkMarkResponse)
async def bulk_mark_attendance(
    payload: BulkMarkRequest,
    current_user: User = Depends(require_permission("attendance", "write")),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Mark attendance for several employees; each entry succeeds or fails on its own"""
    return await service.bulk_mark_attendance(payload.records, marked_by=current_user.id)


@router.post("/", response_model=AttendanceWithEmployeeResponse, status_code=status.HTTP_201_CREATED)
async def mark_attendance(
    payload: AttendanceMarkRequest,
    current_user: User = Depends(require_permission("attendance", "write")),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Manually mark attendance for an employee and day"""
    return await service.mark_attendance(payload, marked_by=current_user.id)


@router.get("/{attendance_id}", response_model=AttendanceWithEmployeeResponse)
async def get_attendance_by_id(
    attendance_id: int,
    current_user: User = Depends(require_permission("attendance", "read")),
    service: AttendanceService = Depends(get_attendance_service)
):
    return await service.get_attendance_by_id(attendance_id)


@router.put("/{attendance_id}", response_model=AttendanceWithEmployeeResponse)
async def update_attendance(
    attendance_id: int,
    payload: AttendanceUpdateRequest,
    current_user: User = Depends(require_permission("attendance", "write")),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Correct status, notes or annotations of a record"""
    return await service.update_attendance(attendance_id, payload, updated_by=current_user.id)


@router.delete("/{attendance_id}")
async def delete_attendance(
    attendance_id: int,
    current_user: User = Depends(require_permission("attendance", "delete")),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Delete an attendance record (admin only)"""
    await service.delete_attendance(attendance_id)
    return {"message": "Attendance record deleted successfully"}
