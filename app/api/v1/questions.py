"""
Question bank endpoints: authoring, bulk import and visibility.
"""
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.dependencies import get_current_active_user, get_db, require_staff
from app.models.activity import AnswerActivity
from app.models.question import Question
from app.models.user import User
from app.schemas.common import Message
from app.schemas.question import (
    Question as QuestionSchema,
    QuestionCreate,
    QuestionImportResult,
    QuestionPublic,
    QuestionUpdate,
    VisibilityUpdate,
)
from app.services import question_import

logger = logging.getLogger(__name__)

router = APIRouter()

EXCEL_EXTENSIONS = (".xlsx", ".xls")
JSON_EXTENSIONS = (".json",)


def _get_question(db: Session, question_id: int) -> Question:
    question = db.query(Question).filter(Question.id == question_id).first()
    if not question:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
    return question


def _validate_upload(file: UploadFile, allowed_extensions: Tuple[str, ...]) -> None:
    file_extension = Path(file.filename or "").suffix.lower()
    if file_extension not in allowed_extensions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File type '{file_extension}' is not allowed.",
        )

    file.file.seek(0, 2)  # Seek to end
    file_size = file.file.tell()
    file.file.seek(0)
    if file_size > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File size exceeds the maximum limit of {settings.MAX_UPLOAD_SIZE} bytes.",
        )
    if file_size == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File size is zero.")


def _store(db: Session, items: List[QuestionCreate], author: User) -> List[Question]:
    questions = [Question(**item.model_dump(), created_by=author.id) for item in items]
    db.add_all(questions)
    db.commit()
    for question in questions:
        db.refresh(question)
    return questions


@router.post("", response_model=QuestionSchema, status_code=status.HTTP_201_CREATED)
def create_question(
    question_in: QuestionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
) -> Any:
    """Add a question to the bank."""
    question = _store(db, [question_in], current_user)[0]
    logger.info(f"Question {question.id} created by user {current_user.id}")
    return question


@router.post("/upload/excel", response_model=QuestionImportResult, status_code=status.HTTP_201_CREATED)
async def upload_questions_excel(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
) -> Any:
    """
    Import questions from an Excel workbook.

    The first sheet is read; columns follow the question fields
    (``options`` as a JSON array or four ``option1``..``option4`` columns).
    """
    _validate_upload(file, EXCEL_EXTENSIONS)
    items = question_import.parse_excel(await file.read())
    questions = _store(db, items, current_user)
    logger.info(f"Imported {len(questions)} questions from '{file.filename}'")
    return {"message": "Questions uploaded successfully", "created": len(questions)}


@router.post("/upload/json", response_model=QuestionImportResult, status_code=status.HTTP_201_CREATED)
async def upload_questions_json(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
) -> Any:
    """Import questions from a JSON array."""
    _validate_upload(file, JSON_EXTENSIONS)
    items = question_import.parse_json(await file.read())
    questions = _store(db, items, current_user)
    logger.info(f"Imported {len(questions)} questions from '{file.filename}'")
    return {"message": "Questions uploaded successfully", "created": len(questions)}


@router.get("", response_model=List[QuestionSchema])
def list_questions(
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    level: Optional[str] = None,
    visibility: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
) -> Any:
    """Question bank with optional filters."""
    query = db.query(Question)
    if category:
        query = query.filter(Question.category == category)
    if subcategory:
        query = query.filter(Question.subcategory == subcategory)
    if level:
        query = query.filter(Question.level == level)
    if visibility is not None:
        query = query.filter(Question.visibility.is_(visibility))
    return query.order_by(Question.id.asc()).offset(skip).limit(limit).all()


@router.get("/subcategories", response_model=List[str])
def list_subcategories(
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Any:
    query = db.query(Question.subcategory).distinct()
    if category:
        query = query.filter(Question.category == category)
    return sorted(row[0] for row in query.all() if row[0])


@router.get("/practice", response_model=List[QuestionPublic])
def practice_questions(
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    level: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """Visible questions for practice; questions locked into a contest are excluded."""
    query = db.query(Question).filter(Question.visibility.is_(True))
    if category:
        query = query.filter(Question.category == category)
    if subcategory:
        query = query.filter(Question.subcategory == subcategory)
    if level:
        query = query.filter(Question.level == level)
    return query.order_by(Question.id.asc()).limit(limit).all()


@router.get("/{question_id}", response_model=QuestionSchema)
def get_question(
    question_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
) -> Any:
    return _get_question(db, question_id)


@router.put("/{question_id}", response_model=QuestionSchema)
def update_question(
    question_id: int,
    question_in: QuestionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
) -> Any:
    """Update a question; the merged result must still be a valid question."""
    question = _get_question(db, question_id)
    current = QuestionSchema.model_validate(question).model_dump(
        include=set(QuestionCreate.model_fields)
    )
    current.update(question_in.model_dump(exclude_unset=True))
    try:
        merged = QuestionCreate.model_validate(current)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.errors()[0].get("msg", "Invalid question"),
        )

    for field, value in merged.model_dump().items():
        setattr(question, field, value)
    db.commit()
    db.refresh(question)
    logger.info(f"Question {question.id} updated by user {current_user.id}")
    return question


@router.patch("/{question_id}/visibility", response_model=QuestionSchema)
def set_question_visibility(
    question_id: int,
    visibility_in: VisibilityUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
) -> Any:
    question = _get_question(db, question_id)
    question.visibility = visibility_in.visibility
    db.commit()
    db.refresh(question)
    return question


@router.delete("/{question_id}", response_model=Message)
def delete_question(
    question_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
) -> Any:
    """Delete a question, detaching it from any contests first."""
    question = _get_question(db, question_id)
    detached = len(question.contests)
    question.contests = []
    db.query(AnswerActivity).filter(AnswerActivity.question_id == question_id).delete(
        synchronize_session=False
    )
    db.delete(question)
    db.commit()
    logger.info(f"Question {question_id} deleted by user {current_user.id} (detached from {detached} contests)")
    return {"message": "Question deleted successfully"}
