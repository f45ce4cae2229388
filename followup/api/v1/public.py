"""Public patient endpoints.

No authentication: the dispatch id in the emailed link is the credential.
"""

from fastapi import APIRouter, HTTPException, status

from followup.api.deps import DbSession, Provider
from followup.dispatch.lifecycle import InvalidTransitionError, current_status, is_terminal
from followup.models.dispatch import DispatchStatus
from followup.schemas.dispatch import PublicDispatchRead, ResponseSubmit, ResponseSubmitted
from followup.services.dispatch import DispatchNotFoundError
from followup.services.responses import ResponseService, ResponseValidationError

router = APIRouter()


@router.get(
    "/dispatches/{dispatch_id}",
    response_model=PublicDispatchRead,
)
async def get_public_dispatch(
    dispatch_id: str,
    session: DbSession,
    provider: Provider,
) -> PublicDispatchRead:
    """Load the questionnaire behind a patient link."""
    service = ResponseService(session, provider=provider)
    try:
        dispatch = await service.get_public_dispatch(dispatch_id)
    except DispatchNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Questionnaire not found",
        )

    dispatch_status = current_status(dispatch)
    return PublicDispatchRead(
        id=dispatch.id,
        pathology_label=dispatch.pathology_label,
        prompts=dispatch.prompts,
        status=dispatch_status.value if dispatch_status else None,
        is_open=not is_terminal(dispatch_status),
    )


@router.post(
    "/dispatches/{dispatch_id}/submit",
    response_model=ResponseSubmitted,
    status_code=status.HTTP_201_CREATED,
)
async def submit_response(
    dispatch_id: str,
    request: ResponseSubmit,
    session: DbSession,
    provider: Provider,
) -> ResponseSubmitted:
    """Submit a patient's answers."""
    service = ResponseService(session, provider=provider)
    try:
        response = await service.submit_response(
            dispatch_id=dispatch_id,
            answers=request.answers,
            comment=request.comment,
        )
    except DispatchNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Questionnaire not found",
        )
    except InvalidTransitionError as e:
        if e.status == DispatchStatus.EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_410_GONE,
                detail="This questionnaire has expired",
            )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This questionnaire has already been completed",
        )
    except ResponseValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return ResponseSubmitted.model_validate(response)
