import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.models.auth.user import User
from app.models.hr.employee import Employee
from app.models.organization.department import Department
from app.models.shared.enums import UserRole

logger = logging.getLogger(__name__)

INITIAL_DEPARTMENTS = [
    {"name": "Human Resources", "code": "HR", "description": "People operations"},
    {"name": "Operations", "code": "OPS", "description": "Day to day operations"},
]


async def create_initial_data(session: AsyncSession):
    """Create initial data for the application"""
    try:
        logger.info("📋 Creating initial data...")

        departments = await create_initial_departments(session)
        await create_admin_user(session, departments["HR"])

        await session.commit()
        logger.info("✅ Initial data created successfully")
        return True

    except Exception as e:
        logger.error(f"❌ Error creating initial data: {str(e)}")
        await session.rollback()
        raise


async def create_initial_departments(session: AsyncSession) -> dict:
    """Create initial departments, returned by code"""
    departments = {}
    for dept_data in INITIAL_DEPARTMENTS:
        result = await session.execute(
            select(Department).where(Department.code == dept_data["code"])
        )
        department = result.scalar_one_or_none()
        if not department:
            department = Department(**dept_data, is_active=True)
            session.add(department)
            await session.flush()
        departments[department.code] = department
    return departments


async def create_admin_user(session: AsyncSession, department: Department):
    """Create the initial admin user with a linked employee profile"""
    result = await session.execute(
        select(User).where(User.email == "admin@attendance.local")
    )
    if result.scalar_one_or_none():
        return

    admin_user = User(
        email="admin@attendance.local",
        full_name="System Administrator",
        role=UserRole.ADMIN,
        is_active=True
    )
    session.add(admin_user)
    await session.flush()

    session.add(Employee(
        employee_code="EMP0001",
        user_id=admin_user.id,
        first_name="System",
        last_name="Administrator",
        email="admin@attendance.local",
        department_id=department.id,
        designation="Administrator",
        is_active=True
    ))
    logger.info("Admin user created: admin@attendance.local")
