from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional

Role = Literal["admin", "operator", "user"]

# Shared properties for user models
class UserBase(BaseModel):
    email: EmailStr

# Schema for user authentication credentials
class UserLogin(UserBase):
    password: str

# Schema for self registration; new accounts always get the "user" role
class UserRegister(UserBase):
    password: str = Field(min_length=6, max_length=72)
    name: str = Field(min_length=2)

# Schema for accounts created by an admin
class UserCreate(UserRegister):
    role: Role = "operator"

# Schema for admin edits, all fields optional
class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6, max_length=72)
    name: Optional[str] = Field(None, min_length=2)
    role: Optional[Role] = None

# Output schema, never exposes the password hash
class UserResponse(UserBase):
    id: int
    name: str
    role: str

    class Config:
        from_attributes = True

# Schema for JWT authentication token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
