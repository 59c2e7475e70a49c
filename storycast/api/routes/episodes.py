"""
Episode endpoints.
Start and list episodes, make choices, finish, abandon, resume and poll audio.
"""
import logging

from fastapi import APIRouter, Depends, Query, status

from storycast.auth.dependencies import get_current_principal
from storycast.auth.models import Principal
from storycast.domain.models import AudioStatus, Episode
from storycast.services.agents.exceptions import EpisodeNotFoundError
from storycast.services.agents.orchestrator import EpisodeOrchestrator
from storycast.services.audio_tools import scene_with_cues

from ..dependencies import get_episode_orchestrator
from ..schemas import (
    AudioListResponse,
    ChoiceRequest,
    ChoiceResponse,
    EpisodeListResponse,
    EpisodeResponse,
    FinaleRequest,
    FinaleResponse,
    StartEpisodeRequest,
    StartEpisodeResponse,
    WindowResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/episodes", tags=["Episodes"])


def _owned_episode(orchestrator: EpisodeOrchestrator, episode_id: str, principal: Principal) -> Episode:
    """Load an episode the caller's account owns; other accounts see 404."""
    episode = orchestrator.get_episode(episode_id)
    if not principal.owns(episode.account_id):
        logger.warning(f"Account {principal.account_id} denied access to episode {episode_id}")
        raise EpisodeNotFoundError(episode_id)
    return episode


@router.post(
    "",
    response_model=StartEpisodeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start Episode",
    description="Create the World Bible, initial State Card and scene 1 for a premise.",
)
async def start_episode(
    request: StartEpisodeRequest,
    principal: Principal = Depends(get_current_principal),
    orchestrator: EpisodeOrchestrator = Depends(get_episode_orchestrator),
) -> StartEpisodeResponse:
    logger.info(f"Start episode request from {principal.user_id}: {request.title}")
    result = await orchestrator.start_episode(
        account_id=principal.account_id,
        user_id=principal.user_id,
        title=request.title,
        premise=request.premise,
        episode_id=request.episode_id,
    )
    return StartEpisodeResponse(**result.to_dict())


@router.get(
    "",
    response_model=EpisodeListResponse,
    summary="List Episodes",
    description="Episodes owned by the caller's account, newest first.",
)
async def list_episodes(
    limit: int = Query(default=50, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    orchestrator: EpisodeOrchestrator = Depends(get_episode_orchestrator),
) -> EpisodeListResponse:
    episodes = orchestrator.list_episodes(principal.account_id, limit=limit)
    return EpisodeListResponse(
        total=len(episodes),
        episodes=[episode.to_dict() for episode in episodes],
    )


@router.post(
    "/{episode_id}/choices",
    response_model=ChoiceResponse,
    summary="Make Choice",
    description="Advance to the pre-generated scene for choice A or B.",
)
async def make_choice(
    episode_id: str,
    request: ChoiceRequest,
    principal: Principal = Depends(get_current_principal),
    orchestrator: EpisodeOrchestrator = Depends(get_episode_orchestrator),
) -> ChoiceResponse:
    _owned_episode(orchestrator, episode_id, principal)
    result = await orchestrator.process_choice(episode_id, request.choice, principal.user_id)
    return ChoiceResponse(**result.to_dict())


@router.post(
    "/{episode_id}/finale",
    response_model=FinaleResponse,
    summary="Finish Episode",
    description="Generate the closing scene, optionally after a final choice.",
)
async def finish_episode(
    episode_id: str,
    request: FinaleRequest,
    principal: Principal = Depends(get_current_principal),
    orchestrator: EpisodeOrchestrator = Depends(get_episode_orchestrator),
) -> FinaleResponse:
    _owned_episode(orchestrator, episode_id, principal)
    result = await orchestrator.finish_episode(episode_id, principal.user_id, choice=request.choice)
    return FinaleResponse(**result.to_dict())


@router.post(
    "/{episode_id}/abandon",
    response_model=EpisodeResponse,
    summary="Abandon Episode",
)
async def abandon_episode(
    episode_id: str,
    principal: Principal = Depends(get_current_principal),
    orchestrator: EpisodeOrchestrator = Depends(get_episode_orchestrator),
) -> EpisodeResponse:
    _owned_episode(orchestrator, episode_id, principal)
    episode = await orchestrator.abandon_episode(episode_id, principal.user_id)
    return EpisodeResponse(episode=episode.to_dict())


@router.post(
    "/{episode_id}/resume",
    response_model=WindowResponse,
    summary="Resume Episode",
    description="Rebuild the in-memory session from storage and restart pre-generation.",
)
async def resume_episode(
    episode_id: str,
    principal: Principal = Depends(get_current_principal),
    orchestrator: EpisodeOrchestrator = Depends(get_episode_orchestrator),
) -> WindowResponse:
    _owned_episode(orchestrator, episode_id, principal)
    snapshot = await orchestrator.resume_episode(episode_id)
    return WindowResponse(**snapshot.to_dict())


@router.get(
    "/{episode_id}",
    response_model=EpisodeResponse,
    summary="Get Episode",
)
async def get_episode(
    episode_id: str,
    principal: Principal = Depends(get_current_principal),
    orchestrator: EpisodeOrchestrator = Depends(get_episode_orchestrator),
) -> EpisodeResponse:
    episode = _owned_episode(orchestrator, episode_id, principal)
    scenes = orchestrator.list_scenes(episode_id)
    return EpisodeResponse(
        episode=episode.to_dict(),
        scenes=[scene_with_cues(scene) for scene in scenes],
    )


@router.get(
    "/{episode_id}/window",
    response_model=WindowResponse,
    summary="Get Rolling Window",
    description="Current scene and the readiness of both pre-generated children.",
)
async def get_window(
    episode_id: str,
    principal: Principal = Depends(get_current_principal),
    orchestrator: EpisodeOrchestrator = Depends(get_episode_orchestrator),
) -> WindowResponse:
    _owned_episode(orchestrator, episode_id, principal)
    return WindowResponse(**orchestrator.get_window(episode_id).to_dict())


@router.get(
    "/{episode_id}/audio",
    response_model=AudioListResponse,
    summary="List Episode Audio",
    description="Poll generated music and sound effects for an episode.",
)
async def list_audio(
    episode_id: str,
    principal: Principal = Depends(get_current_principal),
    orchestrator: EpisodeOrchestrator = Depends(get_episode_orchestrator),
) -> AudioListResponse:
    _owned_episode(orchestrator, episode_id, principal)
    records = orchestrator.list_episode_audio(episode_id)
    return AudioListResponse(
        episode_id=episode_id,
        total=len(records),
        ready=sum(1 for r in records if r.status == AudioStatus.READY),
        audio=[r.to_dict() for r in records],
    )
