# schemas/admin.py

from pydantic import BaseModel, EmailStr


# ------------------------
# Admin login
# ------------------------
class AdminLogin(BaseModel):
    email: EmailStr
    password: str


# ------------------------
# Admin output (API responses)
# ------------------------
class AdminOut(BaseModel):
    id: int
    email: EmailStr
    is_active: bool
    is_superadmin: bool

    class Config:
        from_attributes = True
