from __future__ import annotations

from enum import Enum


class DepartmentName(str, Enum):
    """Fixed set of department names; OTHER requires a custom name."""

    SALES = "Sales"
    DEVELOPERS = "Developers"
    HR = "HR"
    DESIGN_AND_MEDIA = "Design and Media"
    DATA_ENTRY = "Data Entry"
    SEO = "SEO"
    CONTENT_WRITERS = "Content Writers"
    OTHER = "Other"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class EmployeeType(str, Enum):
    FULL_TIME = "Full-Time"
    PART_TIME = "Part-Time"
    CONTRACT = "Contract"
    INTERN = "Intern"


class WorkLocation(str, Enum):
    OFFICE = "Office"
    REMOTE = "Remote"
    HYBRID = "Hybrid"


class EmployeeStatus(str, Enum):
    ACTIVE = "Active"
    ON_LEAVE = "On Leave"
    TERMINATED = "Terminated"
    RESIGNED = "Resigned"
    SUSPENDED = "Suspended"

    @property
    def is_separated(self) -> bool:
        return self in (EmployeeStatus.TERMINATED, EmployeeStatus.RESIGNED)


class DocumentType(str, Enum):
    RESUME = "Resume"
    ID_PROOF = "ID Proof"
    ADDRESS_PROOF = "Address Proof"
    EDUCATION_CERTIFICATE = "Education Certificate"
    EXPERIENCE_LETTER = "Experience Letter"
    OTHER = "Other"


class PunchSource(str, Enum):
    """Where a check-in/check-out punch came from."""

    BIOMETRIC = "Biometric"
    MANUAL = "Manual"
    SYSTEM = "System"


class WorkType(str, Enum):
    OFFICE = "Office"
    REMOTE = "Remote"
    FIELD = "Field"


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    HALF_DAY = "Half Day"
    LATE = "Late"
    ON_LEAVE = "On Leave"
    HOLIDAY = "Holiday"
    WEEKEND = "Weekend"


class LeaveType(str, Enum):
    CASUAL = "Casual"
    SICK = "Sick"
    ANNUAL = "Annual"
    UNPAID = "Unpaid"
    MATERNITY = "Maternity"
    PATERNITY = "Paternity"
    COMPENSATORY = "Compensatory"


class LeaveStatus(str, Enum):
    """Leave approval flow. Approved may still move to Cancelled."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    PAID = "Paid"
    ON_HOLD = "On Hold"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "Bank Transfer"
    CASH = "Cash"
    CHEQUE = "Cheque"


class EmailStatus(str, Enum):
    NOT_SENT = "Not Sent"
    SENT = "Sent"
    FAILED = "Failed"
    BOUNCED = "Bounced"


class BiometricLogType(str, Enum):
    CHECK_IN = "CheckIn"
    CHECK_OUT = "CheckOut"
    BREAK_IN = "BreakIn"
    BREAK_OUT = "BreakOut"


class SettingsCategory(str, Enum):
    WORKING_HOURS = "WorkingHours"
    LEAVE_POLICY = "LeavePolicy"
    ATTENDANCE_RULES = "AttendanceRules"
    SALARY_STRUCTURE = "SalaryStructure"
    EMAIL_CONFIGURATION = "EmailConfiguration"
    BIOMETRIC_SETTINGS = "BiometricSettings"
    HOLIDAYS = "Holidays"
    GENERAL = "General"
