import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException

from app.models.assessment import (
    TOTAL_QUESTIONS,
    AccessResponse,
    AnswerRequest,
    AssessmentReport,
    ProfileResponse,
    QuestionResponse,
    ResultRecordResponse,
    SessionResponse,
    StartSessionRequest,
    SubmitAssessmentRequest,
    parse_mbti_type,
)
from app.repositories.result_repository import PersistenceFailure
from app.services.assessment_service import (
    AccessDeniedError,
    AssessmentService,
    SessionNotFoundError,
    build_report,
    get_assessment_service,
)
from app.services.assessment_session import Complete, InvalidTransition, SessionState
from app.services.personality_profiles import get_profile
from app.services.scoring import IncompleteAssessment

router = APIRouter(prefix="/assessment", tags=["assessment"])
logger = logging.getLogger(__name__)

AuthHeader = Annotated[
    str | None,
    Header(
        alias="Authorization",
        description="Bearer token of the signed-in storefront user.",
    ),
]


def _session_response(
    session_id: str, state: SessionState, service: AssessmentService
) -> SessionResponse:
    total = len(service.questions)
    if isinstance(state, Complete):
        return SessionResponse(
            session_id=session_id,
            status="complete",
            current_index=total - 1,
            total_questions=total,
            answered=total,
            is_retake=state.is_retake,
            report=build_report(state),
        )
    return SessionResponse(
        session_id=session_id,
        status="in_progress",
        current_index=state.index,
        total_questions=total,
        answered=len(state.answers),
        is_retake=state.is_retake,
        answers=dict(state.answers),
        question=QuestionResponse.from_domain(service.questions[state.index]),
    )


async def _require_user(service: AssessmentService, auth_token: str | None) -> str:
    user_id = await service.resolve_user(auth_token)
    if user_id is None:
        raise HTTPException(
            status_code=401,
            detail="Please log in to access the MBTI personality test.",
        )
    return user_id


@router.get("/questions", response_model=list[QuestionResponse])
def list_questions(
    service: AssessmentService = Depends(get_assessment_service),
) -> list[QuestionResponse]:
    return [QuestionResponse.from_domain(question) for question in service.questions]


@router.get("/types/{mbti_type}", response_model=ProfileResponse)
def get_type_profile(mbti_type: str) -> ProfileResponse:
    try:
        normalized = parse_mbti_type(mbti_type)
    except ValueError as error:
        raise HTTPException(status_code=404, detail=str(error)) from error
    return ProfileResponse.from_domain(normalized, get_profile(normalized))


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def start_assessment_session(
    payload: StartSessionRequest | None = None,
    auth_token: AuthHeader = None,
    service: AssessmentService = Depends(get_assessment_service),
) -> SessionResponse:
    user_id = await service.resolve_user(auth_token)
    is_retake = bool(payload and payload.retake)
    try:
        session_id, state = await service.start(user_id, is_retake=is_retake)
    except AccessDeniedError as error:
        raise HTTPException(status_code=403, detail=str(error)) from error
    return _session_response(session_id, state, service)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_assessment_session(
    session_id: str,
    auth_token: AuthHeader = None,
    service: AssessmentService = Depends(get_assessment_service),
) -> SessionResponse:
    user_id = await service.resolve_user(auth_token)
    try:
        state = await service.get_state(session_id, user_id)
    except SessionNotFoundError as error:
        raise HTTPException(status_code=404, detail=str(error)) from error
    return _session_response(session_id, state, service)


@router.post("/sessions/{session_id}/answers", response_model=SessionResponse)
async def answer_question(
    session_id: str,
    payload: AnswerRequest,
    auth_token: AuthHeader = None,
    service: AssessmentService = Depends(get_assessment_service),
) -> SessionResponse:
    user_id = await service.resolve_user(auth_token)
    try:
        state = await service.answer(session_id, user_id, payload.choice)
    except SessionNotFoundError as error:
        raise HTTPException(status_code=404, detail=str(error)) from error
    except InvalidTransition as error:
        raise HTTPException(status_code=409, detail=str(error)) from error
    if isinstance(state, Complete):
        logger.info(
            "Assessment session %s completed type=%s warnings=%d",
            session_id,
            state.result.mbti_type,
            len(state.warnings),
        )
    return _session_response(session_id, state, service)


@router.post("/sessions/{session_id}/previous", response_model=SessionResponse)
async def go_to_previous_question(
    session_id: str,
    auth_token: AuthHeader = None,
    service: AssessmentService = Depends(get_assessment_service),
) -> SessionResponse:
    user_id = await service.resolve_user(auth_token)
    try:
        state = await service.previous(session_id, user_id)
    except SessionNotFoundError as error:
        raise HTTPException(status_code=404, detail=str(error)) from error
    except InvalidTransition as error:
        raise HTTPException(status_code=409, detail=str(error)) from error
    return _session_response(session_id, state, service)


@router.post("/sessions/{session_id}/retake", response_model=SessionResponse)
async def retake_assessment(
    session_id: str,
    auth_token: AuthHeader = None,
    service: AssessmentService = Depends(get_assessment_service),
) -> SessionResponse:
    user_id = await service.resolve_user(auth_token)
    try:
        state = await service.retake(session_id, user_id)
    except SessionNotFoundError as error:
        raise HTTPException(status_code=404, detail=str(error)) from error
    except AccessDeniedError as error:
        raise HTTPException(status_code=403, detail=str(error)) from error
    return _session_response(session_id, state, service)


@router.post("/submit", response_model=AssessmentReport)
async def submit_assessment(
    payload: SubmitAssessmentRequest,
    auth_token: AuthHeader = None,
    service: AssessmentService = Depends(get_assessment_service),
) -> AssessmentReport:
    user_id = await service.resolve_user(auth_token)
    logger.info(
        "Assessment submission received user_id=%s answers=%d/%d retake=%s",
        user_id,
        len(payload.answers),
        TOTAL_QUESTIONS,
        payload.retake,
    )
    try:
        complete = await service.submit(user_id, payload.answers, is_retake=payload.retake)
    except IncompleteAssessment as error:
        raise HTTPException(status_code=422, detail=str(error)) from error
    except AccessDeniedError as error:
        raise HTTPException(status_code=403, detail=str(error)) from error
    return build_report(complete)


@router.get("/results/latest", response_model=ResultRecordResponse)
async def get_latest_result(
    auth_token: AuthHeader = None,
    service: AssessmentService = Depends(get_assessment_service),
) -> ResultRecordResponse:
    user_id = await _require_user(service, auth_token)
    try:
        record = await service.latest_result(user_id)
    except PersistenceFailure as error:
        logger.warning("Latest result lookup failed for user_id=%s: %s", user_id, error)
        raise HTTPException(
            status_code=502, detail="Could not load your previous results."
        ) from error
    if record is None:
        raise HTTPException(status_code=404, detail="No previous MBTI result found.")
    return ResultRecordResponse.from_domain(record)


@router.get("/access", response_model=AccessResponse)
async def get_access(
    auth_token: AuthHeader = None,
    service: AssessmentService = Depends(get_assessment_service),
) -> AccessResponse:
    user_id = await _require_user(service, auth_token)
    status = await service.access_status(user_id)
    try:
        previous_result = await service.latest_result(user_id)
    except PersistenceFailure as error:
        logger.warning("Previous result check failed for user_id=%s: %s", user_id, error)
        previous_result = None
    return AccessResponse(
        has_access=status.has_access or not service.requires_access,
        has_confirmed_order=status.has_confirmed_order,
        has_enrollment=status.has_enrollment,
        has_previous_result=previous_result is not None,
    )
