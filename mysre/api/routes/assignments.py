"""Assignments — weekly coursework for the A/B classes, submissions and grading.

Admins publish assignments with a numeric code and the classes they target.
Students submit against an active assignment of their own class by typing
that code in; one submission per student, editable until it is graded.
"""

import logging
import uuid

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from mysre.api.deps import AdminAuth, Auth, Session
from mysre.core.database import commit_or_fail
from mysre.core.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
    ValidationError,
)
from mysre.models.assignment import (
    Assignment,
    AssignmentCreate,
    AssignmentDetail,
    AssignmentRead,
    AssignmentStats,
    AssignmentSubmission,
    AssignmentUpdate,
    SubmissionCreate,
    SubmissionGrade,
    SubmissionRead,
    SubmissionStatus,
    SubmissionUpdate,
)
from mysre.models.base import utcnow
from mysre.models.user import User, UserGroup, UserSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assignments", tags=["assignments"])


class CodeCheck(BaseModel):
    exists: bool


# ── Helpers ───────────────────────────────────────────────────

def _to_read(assignment: Assignment, creator: User | None = None) -> AssignmentRead:
    return AssignmentRead(
        id=assignment.id,
        title=assignment.title,
        description=assignment.description,
        week_number=assignment.week_number,
        assignment_code=assignment.assignment_code,
        file_url=assignment.file_url,
        file_name=assignment.file_name,
        due_date=assignment.due_date,
        is_active=assignment.is_active,
        target_classes=assignment.target_classes,
        created_by=assignment.created_by,
        created_at=assignment.created_at,
        updated_at=assignment.updated_at,
        creator=UserSummary.model_validate(creator) if creator is not None else None,
    )


def _submission_read(
    sub: AssignmentSubmission,
    assignment: Assignment | None = None,
    student: User | None = None,
) -> SubmissionRead:
    return SubmissionRead(
        id=sub.id,
        assignment_id=sub.assignment_id,
        student_id=sub.student_id,
        assignment_code_input=sub.assignment_code_input,
        file_url=sub.file_url,
        file_name=sub.file_name,
        submission_text=sub.submission_text,
        status=sub.status,
        grade=sub.grade,
        feedback=sub.feedback,
        submitted_at=sub.submitted_at,
        graded_at=sub.graded_at,
        created_at=sub.created_at,
        updated_at=sub.updated_at,
        assignment_title=assignment.title if assignment is not None else None,
        student=UserSummary.model_validate(student) if student is not None else None,
    )


def _submissions_query():
    return (
        select(AssignmentSubmission, Assignment, User)
        .join(Assignment, AssignmentSubmission.assignment_id == Assignment.id)
        .join(User, AssignmentSubmission.student_id == User.id)
        .order_by(AssignmentSubmission.submitted_at.desc())  # type: ignore[union-attr]
    )


async def _get_or_404(assignment_id: uuid.UUID, session) -> Assignment:
    assignment = await session.get(Assignment, assignment_id)
    if assignment is None:
        raise NotFoundError("Assignment not found")
    return assignment


async def _get_submission_or_404(submission_id: uuid.UUID, session) -> AssignmentSubmission:
    sub = await session.get(AssignmentSubmission, submission_id)
    if sub is None:
        raise NotFoundError("Submission not found")
    return sub


async def _code_exists(code: str, session, exclude_id: uuid.UUID | None = None) -> bool:
    stmt = select(Assignment.id).where(Assignment.assignment_code == code)
    if exclude_id is not None:
        stmt = stmt.where(Assignment.id != exclude_id)
    return (await session.execute(stmt.limit(1))).scalar_one_or_none() is not None


async def _commit_assignment(session) -> None:
    # The unique index still catches a code taken between the check and the write
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError("Assignment code already exists") from exc


# ── Assignments ──────────────────────────────────────────────

@router.get("", response_model=list[AssignmentRead])
async def list_assignments(
    session: Session,
    student_class: UserGroup | None = Query(None, alias="class"),
) -> list[AssignmentRead]:
    """Ordered by week. With ``class``, only active assignments targeting it."""
    stmt = (
        select(Assignment, User)
        .join(User, Assignment.created_by == User.id, isouter=True)
        .order_by(Assignment.week_number.asc(), Assignment.created_at.asc())  # type: ignore[union-attr]
    )
    if student_class is not None:
        stmt = stmt.where(Assignment.is_active == True)  # noqa: E712
    rows = (await session.execute(stmt)).all()
    return [
        _to_read(a, creator)
        for a, creator in rows
        if student_class is None or student_class in a.target_classes
    ]


@router.post("", response_model=AssignmentRead, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    body: AssignmentCreate, auth: AdminAuth, session: Session,
) -> AssignmentRead:
    if await _code_exists(body.assignment_code, session):
        raise ValidationError("Assignment code already exists")

    assignment = Assignment(
        **body.model_dump(exclude={"target_classes"}),
        target_classes=[str(c) for c in body.target_classes],
        created_by=auth.user_id,
    )
    session.add(assignment)
    await _commit_assignment(session)
    await session.refresh(assignment)
    logger.info("Created assignment %s (week %d)", assignment.id, assignment.week_number)
    return _to_read(assignment, await session.get(User, auth.user_id))


@router.get("/stats", response_model=AssignmentStats)
async def get_assignment_stats(session: Session) -> AssignmentStats:
    async def _count(model, *conditions) -> int:
        return (await session.execute(
            select(func.count()).select_from(model).where(*conditions)
        )).scalar_one()

    classes = [set(tc) for tc in (await session.execute(select(Assignment.target_classes))).scalars()]
    return AssignmentStats(
        total_assignments=len(classes),
        active_assignments=await _count(Assignment, Assignment.is_active == True),  # noqa: E712
        total_submissions=await _count(AssignmentSubmission),
        pending_submissions=await _count(
            AssignmentSubmission, AssignmentSubmission.status == SubmissionStatus.SUBMITTED,
        ),
        graded_submissions=await _count(
            AssignmentSubmission, AssignmentSubmission.status == SubmissionStatus.GRADED,
        ),
        class_a_assignments=sum(1 for tc in classes if UserGroup.A.value in tc),
        class_b_assignments=sum(1 for tc in classes if UserGroup.B.value in tc),
        both_classes_assignments=sum(1 for tc in classes if {UserGroup.A.value, UserGroup.B.value} <= tc),
    )


@router.get("/code-exists", response_model=CodeCheck)
async def check_assignment_code(
    session: Session,
    code: str = Query(..., min_length=1),
    exclude_id: uuid.UUID | None = Query(None, alias="excludeId"),
) -> CodeCheck:
    return CodeCheck(exists=await _code_exists(code, session, exclude_id))


@router.get("/by-code/{code}", response_model=AssignmentRead)
async def get_assignment_by_code(
    code: str,
    session: Session,
    student_class: UserGroup = Query(..., alias="class"),
) -> AssignmentRead:
    """Student lookup: the code must belong to an active assignment for their class."""
    row = (await session.execute(
        select(Assignment, User)
        .join(User, Assignment.created_by == User.id, isouter=True)
        .where(Assignment.assignment_code == code, Assignment.is_active == True)  # noqa: E712
    )).one_or_none()
    if row is None or student_class not in row[0].target_classes:
        raise NotFoundError("Assignment not found")
    return _to_read(*row)


# ── Submissions across assignments ───────────────────────────

@router.get("/submissions", response_model=list[SubmissionRead])
async def list_all_submissions(auth: AdminAuth, session: Session) -> list[SubmissionRead]:
    rows = (await session.execute(_submissions_query())).all()
    return [_submission_read(*row) for row in rows]


@router.put("/submissions/{submission_id}", response_model=SubmissionRead)
async def update_submission(
    submission_id: uuid.UUID, body: SubmissionUpdate, auth: Auth, session: Session,
) -> SubmissionRead:
    """Resubmit: the owning student may edit until the submission is graded."""
    sub = await _get_submission_or_404(submission_id, session)
    if sub.student_id != auth.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the submitting student can edit a submission",
        )
    if sub.status == SubmissionStatus.GRADED:
        raise BusinessRuleViolation("Graded submissions cannot be changed")

    assignment = await _get_or_404(sub.assignment_id, session)
    update_data = body.model_dump(exclude_unset=True)
    code = update_data.get("assignment_code_input")
    if code is not None and code != assignment.assignment_code:
        raise ValidationError("Assignment code does not match")
    if "assignment_code_input" in update_data and code is None:
        update_data.pop("assignment_code_input")

    for field, value in update_data.items():
        setattr(sub, field, value)
    sub.status = SubmissionStatus.SUBMITTED
    sub.submitted_at = sub.updated_at = utcnow()
    session.add(sub)
    await commit_or_fail(session)
    await session.refresh(sub)
    return _submission_read(sub, assignment, await session.get(User, sub.student_id))


@router.patch("/submissions/{submission_id}/grade", response_model=SubmissionRead)
async def grade_submission(
    submission_id: uuid.UUID, body: SubmissionGrade, auth: AdminAuth, session: Session,
) -> SubmissionRead:
    sub = await _get_submission_or_404(submission_id, session)
    sub.grade = body.grade
    sub.feedback = body.feedback
    sub.status = SubmissionStatus.GRADED
    sub.graded_at = sub.updated_at = utcnow()
    session.add(sub)
    await commit_or_fail(session)
    await session.refresh(sub)
    logger.info("Graded submission %s: %d", sub.id, sub.grade)
    return _submission_read(
        sub,
        await session.get(Assignment, sub.assignment_id),
        await session.get(User, sub.student_id),
    )


# ── Single assignment ────────────────────────────────────────

@router.get("/{assignment_id}", response_model=AssignmentDetail)
async def get_assignment(assignment_id: uuid.UUID, session: Session) -> AssignmentDetail:
    assignment = await _get_or_404(assignment_id, session)
    creator = await session.get(User, assignment.created_by) if assignment.created_by else None
    rows = (await session.execute(
        _submissions_query().where(AssignmentSubmission.assignment_id == assignment_id)
    )).all()
    return AssignmentDetail(
        **_to_read(assignment, creator).model_dump(),
        submissions=[_submission_read(*row) for row in rows],
    )


@router.put("/{assignment_id}", response_model=AssignmentRead)
async def update_assignment(
    assignment_id: uuid.UUID, body: AssignmentUpdate, auth: AdminAuth, session: Session,
) -> AssignmentRead:
    assignment = await _get_or_404(assignment_id, session)

    update_data = body.model_dump(exclude_unset=True)
    code = update_data.get("assignment_code")
    if code and await _code_exists(code, session, exclude_id=assignment_id):
        raise ValidationError("Assignment code already exists")
    if "target_classes" in update_data:
        update_data["target_classes"] = [str(c) for c in update_data["target_classes"]]
    for field, value in update_data.items():
        setattr(assignment, field, value)

    assignment.updated_at = utcnow()
    session.add(assignment)
    await _commit_assignment(session)
    await session.refresh(assignment)
    creator = await session.get(User, assignment.created_by) if assignment.created_by else None
    return _to_read(assignment, creator)


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(assignment_id: uuid.UUID, auth: AdminAuth, session: Session) -> None:
    assignment = await _get_or_404(assignment_id, session)
    await session.execute(
        delete(AssignmentSubmission).where(AssignmentSubmission.assignment_id == assignment_id)
    )
    await session.delete(assignment)
    await commit_or_fail(session)
    logger.info("Deleted assignment %s", assignment_id)


# ── Submissions for one assignment ───────────────────────────

@router.post(
    "/{assignment_id}/submissions",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
)
async def submit_assignment(
    assignment_id: uuid.UUID, body: SubmissionCreate, auth: Auth, session: Session,
) -> SubmissionRead:
    assignment = await _get_or_404(assignment_id, session)
    student = await session.get(User, auth.user_id)

    if not assignment.is_active:
        raise BusinessRuleViolation("Assignment is closed")
    if student.group is None or student.group not in assignment.target_classes:
        raise BusinessRuleViolation("Assignment is not open to your class")
    if body.assignment_code_input != assignment.assignment_code:
        raise ValidationError("Assignment code does not match")

    existing = (await session.execute(
        select(AssignmentSubmission.id).where(
            AssignmentSubmission.assignment_id == assignment_id,
            AssignmentSubmission.student_id == auth.user_id,
        )
    )).scalar_one_or_none()
    if existing is not None:
        raise BusinessRuleViolation("Assignment already submitted")

    sub = AssignmentSubmission(
        assignment_id=assignment_id,
        student_id=auth.user_id,
        **body.model_dump(),
    )
    session.add(sub)
    await commit_or_fail(session)
    await session.refresh(sub)
    logger.info("Student %s submitted assignment %s", auth.user_id, assignment_id)
    return _submission_read(sub, assignment, student)


@router.get("/{assignment_id}/submissions", response_model=list[SubmissionRead])
async def list_submissions(
    assignment_id: uuid.UUID, auth: AdminAuth, session: Session,
) -> list[SubmissionRead]:
    await _get_or_404(assignment_id, session)
    rows = (await session.execute(
        _submissions_query().where(AssignmentSubmission.assignment_id == assignment_id)
    )).all()
    return [_submission_read(*row) for row in rows]


@router.get("/{assignment_id}/submissions/me", response_model=SubmissionRead)
async def get_my_submission(
    assignment_id: uuid.UUID, auth: Auth, session: Session,
) -> SubmissionRead:
    row = (await session.execute(
        _submissions_query().where(
            AssignmentSubmission.assignment_id == assignment_id,
            AssignmentSubmission.student_id == auth.user_id,
        )
    )).one_or_none()
    if row is None:
        raise NotFoundError("Submission not found")
    return _submission_read(*row)
