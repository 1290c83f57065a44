"""
Contest endpoints: authoring, participation, submission, results and exports.
"""
import logging
from typing import Any, List

from fastapi import APIRouter, Depends, Response, status

from app.core.dependencies import (
    get_contest_service,
    get_current_active_user,
    require_admin,
    require_staff,
)
from app.models.user import User
from app.schemas.common import Message
from app.schemas.contest import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    Contest,
    ContestCreate,
    ContestDetail,
    ContestExtend,
    ContestQuestions,
    ContestUpdate,
    JoinByCodeRequest,
    JoinResponse,
    Participation,
    UpcomingContest,
    UserParticipation,
)
from app.schemas.result import (
    AllContestStats,
    ContestAnalysis,
    ContestStatsResponse,
    Leaderboard,
    ParticipantAnswers,
    ParticipantList,
    SubmissionRequest,
    SubmissionResponse,
    UserResult,
    ViolationRequest,
    ViolationResponse,
)
from app.services.contest_service import ContestService

logger = logging.getLogger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


# ============= Authoring =============

@router.post("", response_model=Contest, status_code=status.HTTP_201_CREATED)
def create_contest(
    contest_in: ContestCreate,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    """
    Create a contest from existing questions.

    The questions are hidden from the practice bank while the contest
    exists. With ``requiresCode`` a unique join code is generated.
    """
    contest = service.create_contest(current_user, contest_in)
    return service.contest_response(contest)


@router.get("", response_model=List[Contest])
def list_contests(
    current_user: User = Depends(get_current_active_user),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    contests = service.list_contests()
    if not current_user.is_staff:
        # join codes are handed out by staff
        for contest in contests:
            contest.contest_code = None
    return contests


@router.get("/upcoming", response_model=List[UpcomingContest])
def list_upcoming_contests(
    current_user: User = Depends(get_current_active_user),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    return service.list_upcoming()


@router.get("/stats/all", response_model=AllContestStats)
def all_contest_stats(
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    """Participation and average score for every contest."""
    return service.all_contest_stats()


@router.get("/me/participations", response_model=List[UserParticipation])
def my_participations(
    current_user: User = Depends(get_current_active_user),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    return service.list_user_participations(current_user.id)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_contests(
    request: BulkDeleteRequest,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    """Delete several contests with their participations and answers."""
    deleted = service.bulk_delete(request.contest_ids)
    return {"message": f"Successfully deleted {deleted} contests", "deleted_count": deleted}


@router.post("/join-by-code", response_model=JoinResponse)
def join_contest_by_code(
    request: JoinByCodeRequest,
    current_user: User = Depends(get_current_active_user),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    participation, contest = service.join_by_code(current_user, request.contest_code)
    return {
        "message": "Successfully joined contest",
        "participation": Participation.model_validate(participation),
        "contest": service.contest_questions(contest),
    }


@router.get("/{contest_id}", response_model=ContestDetail)
def get_contest(
    contest_id: int,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    """Contest with its full questions (answer key included)."""
    return service.contest_detail(contest_id)


@router.get("/{contest_id}/questions", response_model=ContestQuestions)
def get_contest_questions(
    contest_id: int,
    current_user: User = Depends(get_current_active_user),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    """Contest questions without the answer key."""
    return service.questions_for(current_user, contest_id)


@router.put("/{contest_id}", response_model=Contest)
def update_contest(
    contest_id: int,
    contest_in: ContestUpdate,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    contest = service.update_contest(contest_id, contest_in)
    return service.contest_response(contest)


@router.post("/{contest_id}/extend", response_model=Contest)
def extend_contest(
    contest_id: int,
    request: ContestExtend,
    current_user: User = Depends(require_admin),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    """Push the end time back and notify participants."""
    contest = service.extend_contest(contest_id, request.extension_minutes)
    return service.contest_response(contest)


@router.delete("/{contest_id}", response_model=Message)
def delete_contest(
    contest_id: int,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    service.delete_contest(contest_id)
    return {"message": "Contest deleted successfully"}


# ============= Participation =============

@router.post("/{contest_id}/join", response_model=JoinResponse)
def join_contest(
    contest_id: int,
    current_user: User = Depends(get_current_active_user),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    """Start the contest; joining again resumes the existing participation."""
    participation, contest = service.join(current_user, contest_id)
    return {
        "message": "Successfully joined contest",
        "participation": Participation.model_validate(participation),
        "contest": service.contest_questions(contest),
    }


@router.post("/{contest_id}/violations", response_model=ViolationResponse)
def report_violation(
    contest_id: int,
    request: ViolationRequest,
    current_user: User = Depends(get_current_active_user),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    return service.record_violation(current_user.id, contest_id, request.violation_type)


@router.post("/{contest_id}/submit", response_model=SubmissionResponse)
def submit_contest(
    contest_id: int,
    submission: SubmissionRequest,
    current_user: User = Depends(get_current_active_user),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    return service.submit(current_user, contest_id, submission)


# ============= Results =============

@router.get("/{contest_id}/result", response_model=UserResult)
def get_my_result(
    contest_id: int,
    current_user: User = Depends(get_current_active_user),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    """The caller's own result, available once the contest has ended."""
    return service.user_result(current_user.id, contest_id)


@router.get("/{contest_id}/leaderboard", response_model=Leaderboard)
def get_leaderboard(
    contest_id: int,
    current_user: User = Depends(get_current_active_user),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    return service.leaderboard(contest_id)


@router.get("/{contest_id}/stats", response_model=ContestStatsResponse)
def get_contest_stats(
    contest_id: int,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    return service.contest_stats(contest_id)


@router.get("/{contest_id}/analysis", response_model=ContestAnalysis)
def get_contest_analysis(
    contest_id: int,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    return service.detailed_analysis(contest_id)


@router.get("/{contest_id}/participants", response_model=ParticipantList)
def get_participants(
    contest_id: int,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    return service.participants(contest_id)


@router.get("/{contest_id}/participants/{participation_id}", response_model=ParticipantAnswers)
def get_participant_answers(
    contest_id: int,
    participation_id: int,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Any:
    return service.participant_answers(contest_id, participation_id)


@router.get("/{contest_id}/export/csv")
def export_results_csv(
    contest_id: int,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Response:
    filename, content = service.export_csv(contest_id)
    return Response(content=content, media_type="text/csv", headers=_attachment(filename))


@router.get("/{contest_id}/export/excel")
def export_results_excel(
    contest_id: int,
    current_user: User = Depends(require_staff),
    service: ContestService = Depends(get_contest_service),
) -> Response:
    filename, content = service.export_excel(contest_id)
    return Response(content=content, media_type=XLSX_MEDIA_TYPE, headers=_attachment(filename))
