from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, validator, root_validator
from typing import Optional, Dict
from enum import Enum

# ──────────────────────────────────────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────────────────────────────────────

class UserRole(str, Enum):
    ADMIN = "admin"
    TRAINEE = "trainee"
    STAFF = "staff"
    RESOURCE_PERSON = "resource_person"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


# ──────────────────────────────────────────────────────────────────────────────
# Login / admin payloads
# ──────────────────────────────────────────────────────────────────────────────

class EmailPasswordLogin(BaseModel):
    email: EmailStr
    password: str


class AdminCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


# ──────────────────────────────────────────────────────────────────────────────
# Trainee registration (start -> verify -> complete)
# ──────────────────────────────────────────────────────────────────────────────

class RegistrationStart(BaseModel):
    email: EmailStr


class EmailCodeVerification(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)


class TraineeRegistration(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    confirm_password: str
    first_name: str = Field(..., min_length=1)
    surname: str = Field(..., min_length=1)
    middle_name: Optional[str] = None
    phone: str
    gender: Gender
    date_of_birth: str = Field(..., description="Date of birth as YYYY-MM-DD")
    state: str
    lga: str
    nationality: Optional[str] = None

    @root_validator(pre=True)
    def _fold_legacy(cls, v: Dict) -> Dict:
        # Older clients send lastName/firstName and dob
        v.setdefault("surname", v.get("last_name") or v.get("lastName"))
        v.setdefault("first_name", v.get("firstName"))
        v.setdefault("date_of_birth", v.get("dob") or v.get("dateOfBirth"))
        if isinstance(v.get("gender"), str):
            v["gender"] = v["gender"].lower()
        return v

    @validator("confirm_password")
    def _passwords_match(cls, value, values):
        if "password" in values and value != values["password"]:
            raise ValueError("Passwords do not match")
        return value


# ──────────────────────────────────────────────────────────────────────────────
# Staff / resource person registration (requires a generated ID)
# ──────────────────────────────────────────────────────────────────────────────

class PersonnelRegistration(BaseModel):
    generated_id: str = Field(..., description="Issued ID, e.g. ST-0C0S0S1 or RP-0C0S0S1")
    email: EmailStr
    password: str = Field(..., min_length=6)
    confirm_password: str
    first_name: str = Field(..., min_length=1)
    surname: str = Field(..., min_length=1)
    middle_name: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None       # staff
    specialization: Optional[str] = None   # resource persons

    @validator("generated_id")
    def _normalize_id(cls, value: str) -> str:
        return value.strip().upper()

    @validator("confirm_password")
    def _passwords_match(cls, value, values):
        if "password" in values and value != values["password"]:
            raise ValueError("Passwords do not match")
        return value


# ──────────────────────────────────────────────────────────────────────────────
# Admin-side updates
# ──────────────────────────────────────────────────────────────────────────────

class TraineeUpdate(BaseModel):
    first_name: Optional[str] = None
    surname: Optional[str] = None
    middle_name: Optional[str] = None
    phone: Optional[str] = None
    state: Optional[str] = None
    lga: Optional[str] = None
    sponsor_id: Optional[str] = None
    room_number: Optional[str] = None
    lecture_venue: Optional[str] = None
    is_active: Optional[bool] = None


class PersonnelUpdate(BaseModel):
    first_name: Optional[str] = None
    surname: Optional[str] = None
    middle_name: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    specialization: Optional[str] = None
    is_active: Optional[bool] = None
