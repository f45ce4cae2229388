"""Questionnaire definition endpoints."""

from fastapi import APIRouter, HTTPException, status

from followup.api.deps import CurrentPractitioner, DbSession
from followup.dispatch.scheduling import DispatchValidationError
from followup.schemas.questionnaire import QuestionnaireCreate, QuestionnaireRead
from followup.services.questionnaire import QuestionnaireNotFoundError, QuestionnaireService

router = APIRouter()


@router.post(
    "",
    response_model=QuestionnaireRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_questionnaire(
    request: QuestionnaireCreate,
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> QuestionnaireRead:
    """Create a questionnaire template."""
    service = QuestionnaireService(session)
    try:
        questionnaire = await service.create_questionnaire(
            owner_id=practitioner.id,
            pathology_label=request.pathology_label,
            prompts=[prompt.model_dump() for prompt in request.prompts],
            default_send_delay_days=request.default_send_delay_days,
            is_favorite=request.is_favorite,
        )
    except DispatchValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return QuestionnaireRead.model_validate(questionnaire)


@router.get(
    "",
    response_model=list[QuestionnaireRead],
)
async def list_questionnaires(
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> list[QuestionnaireRead]:
    """List the practitioner's questionnaires."""
    service = QuestionnaireService(session)
    questionnaires = await service.list_questionnaires(practitioner.id)
    return [QuestionnaireRead.model_validate(q) for q in questionnaires]


@router.get(
    "/{questionnaire_id}",
    response_model=QuestionnaireRead,
)
async def get_questionnaire(
    questionnaire_id: str,
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> QuestionnaireRead:
    """Get one questionnaire."""
    service = QuestionnaireService(session)
    try:
        questionnaire = await service.get_questionnaire(questionnaire_id, practitioner.id)
    except QuestionnaireNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Questionnaire not found",
        )

    return QuestionnaireRead.model_validate(questionnaire)


@router.delete(
    "/{questionnaire_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_questionnaire(
    questionnaire_id: str,
    practitioner: CurrentPractitioner,
    session: DbSession,
) -> None:
    """Delete a questionnaire template."""
    service = QuestionnaireService(session)
    try:
        await service.delete_questionnaire(questionnaire_id, practitioner.id)
    except QuestionnaireNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Questionnaire not found",
        )
