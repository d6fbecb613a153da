"""
Resume endpoints.

Owner-scoped CRUD, HTML download and import of browser-saved resumes.
Every query filters on the authenticated user's ID.
"""
import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from app.db.models.user import User
from app.db.models.resume import Resume
from app.core.auth_dependency import get_db, get_current_user_obj
from app.core.errors import NotFoundError, ValidationError
from app.core.quota_guard import require_resume_quota
from app.core.timeutils import utcnow, as_naive_utc
from app.schemas.resume import (
    ResumeCreate,
    ResumeUpdate,
    ResumeResponse,
    ResumeSummary,
    ResumeEnvelope,
    ResumeCreatedEnvelope,
    ResumeListResponse,
    MigrateResumesRequest,
    MigrateResumesResponse,
)
from app.services.resume_renderer import render_resume_html, download_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resumes", tags=["Resumes"])


def get_owned_resume(db: Session, resume_id: int, user_id: int) -> Resume:
    """Fetch a resume that belongs to the user or raise 404."""
    resume = db.query(Resume).filter(Resume.id == resume_id, Resume.user_id == user_id).first()
    if not resume:
        raise NotFoundError("Resume not found")
    return resume


@router.get("", response_model=ResumeListResponse)
def list_resumes(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    """List the user's resumes, newest first."""
    resumes = (
        db.query(Resume)
        .filter(Resume.user_id == user.id)
        .order_by(Resume.created_at.desc(), Resume.id.desc())
        .all()
    )
    return ResumeListResponse(resumes=[ResumeSummary.model_validate(r) for r in resumes])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ResumeCreatedEnvelope)
def create_resume(
    body: ResumeCreate,
    user: User = Depends(require_resume_quota),
    db: Session = Depends(get_db),
):
    """
    Create a resume.

    Free-plan users are limited to three; the quota dependency rejects the
    request with 403 before anything is written.
    """
    if not body.title or body.data is None:
        raise ValidationError("Title and data are required", code="missing_field")

    resume = Resume(
        user_id=user.id,
        title=body.title,
        data=body.data,
        content=body.content or "",
        template=body.template or "default",
    )
    try:
        db.add(resume)
        db.commit()
        db.refresh(resume)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Resume created: resume_id={resume.id}, user_id={user.id}")
    return ResumeCreatedEnvelope(resume=ResumeSummary.model_validate(resume))


@router.get("/{resume_id}", response_model=ResumeEnvelope)
def get_resume(
    resume_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    resume = get_owned_resume(db, resume_id, user.id)
    return ResumeEnvelope(resume=ResumeResponse.model_validate(resume))


@router.put("/{resume_id}", response_model=ResumeEnvelope)
def update_resume(
    resume_id: int,
    body: ResumeUpdate,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    """Update the provided fields; empty values leave the stored ones alone."""
    resume = get_owned_resume(db, resume_id, user.id)

    if body.title:
        resume.title = body.title
    if body.data:
        resume.data = body.data
    if body.content:
        resume.content = body.content
    if body.template:
        resume.template = body.template

    try:
        db.commit()
        db.refresh(resume)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Resume updated: resume_id={resume.id}, user_id={user.id}")
    return ResumeEnvelope(resume=ResumeResponse.model_validate(resume))


@router.delete("/{resume_id}")
def delete_resume(
    resume_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    resume = get_owned_resume(db, resume_id, user.id)
    try:
        db.delete(resume)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Resume deleted: resume_id={resume_id}, user_id={user.id}")
    return {"success": True, "message": "Resume deleted successfully"}


@router.get("/{resume_id}/download", response_class=HTMLResponse)
def download_resume(
    resume_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    """Download the resume as an HTML attachment (printable to PDF)."""
    resume = get_owned_resume(db, resume_id, user.id)
    html = render_resume_html(resume.title, resume.data, resume.content)
    filename = download_filename(resume.title)

    logger.info(f"Resume downloaded: resume_id={resume.id}, user_id={user.id}")
    return HTMLResponse(
        content=html,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/migrate", response_model=MigrateResumesResponse)
def migrate_resumes(
    body: MigrateResumesRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    """
    Import resumes saved in the browser.

    Skips any resume with the same title and full name the user already
    has. Not counted against the plan quota.
    """
    if body.resumes is None:
        raise ValidationError("Resumes array is required", code="missing_field")

    migrated = 0
    errors = []

    for item in body.resumes:
        full_name = (item.data or {}).get("fullName")
        try:
            if not item.title or item.data is None:
                raise ValueError("Title and data are required")

            candidates = db.query(Resume).filter(Resume.user_id == user.id, Resume.title == item.title).all()
            if any((r.data or {}).get("fullName") == full_name for r in candidates):
                continue

            now = utcnow()
            db.add(Resume(
                user_id=user.id,
                title=item.title,
                data=item.data,
                content=item.content or "",
                template=item.template or "default",
                created_at=as_naive_utc(item.createdAt) or now,
                updated_at=as_naive_utc(item.updatedAt) or now,
            ))
            db.commit()
            migrated += 1
        except Exception as e:
            db.rollback()
            logger.warning(f"Failed to migrate resume '{item.title}' for user_id={user.id}: {e}")
            errors.append({"title": item.title, "error": str(e)})

    logger.info(f"Resume migration: user_id={user.id}, migrated={migrated}, errors={len(errors)}")
    return MigrateResumesResponse(
        migratedCount=migrated,
        errors=errors,
        message=f"Successfully migrated {migrated} resumes",
    )
