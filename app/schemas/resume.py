"""
Pydantic schemas for resume endpoints.
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field


class ResumeCreate(BaseModel):
    """Schema for creating a resume. Title and data are checked by the route."""
    title: Optional[str] = Field(None, description="Resume title", max_length=255)
    data: Optional[Dict[str, Any]] = Field(None, description="Structured form fields (fullName, jobRole, ...)")
    content: Optional[str] = Field(None, description="Pre-rendered resume markup")
    template: Optional[str] = Field(None, description="Template name")

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Backend Engineer",
                "data": {
                    "fullName": "Jane Doe",
                    "jobRole": "Backend Engineer",
                    "email": "jane@example.com",
                    "skills": "Python\nPostgreSQL"
                },
                "template": "modern"
            }
        }


class ResumeUpdate(BaseModel):
    """Schema for updating a resume; empty fields are left unchanged."""
    title: Optional[str] = Field(None, description="Resume title", max_length=255)
    data: Optional[Dict[str, Any]] = Field(None, description="Structured form fields")
    content: Optional[str] = Field(None, description="Pre-rendered resume markup")
    template: Optional[str] = Field(None, description="Template name")


class ResumeSummary(BaseModel):
    """Schema for resume list entries."""
    id: int = Field(..., description="Resume ID")
    title: str = Field(..., description="Resume title")
    template: str = Field("default", description="Template name")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    class Config:
        from_attributes = True


class ResumeResponse(ResumeSummary):
    """Schema for a full resume."""
    user_id: int = Field(..., description="Owner user ID")
    data: Dict[str, Any] = Field(default_factory=dict)
    content: str = Field("", description="Pre-rendered resume markup")

    class Config:
        from_attributes = True


class ResumeEnvelope(BaseModel):
    success: bool = True
    resume: ResumeResponse


class ResumeCreatedEnvelope(BaseModel):
    success: bool = True
    resume: ResumeSummary


class ResumeListResponse(BaseModel):
    success: bool = True
    resumes: List[ResumeSummary] = Field(..., description="Resumes, newest first")


class MigrateResumeItem(BaseModel):
    """A resume saved in the browser before accounts existed."""
    title: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    content: Optional[str] = None
    template: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class MigrateResumesRequest(BaseModel):
    resumes: Optional[List[MigrateResumeItem]] = Field(None, description="Resumes to import")


class MigrateResumesResponse(BaseModel):
    success: bool = True
    migratedCount: int = 0
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    message: str = ""
