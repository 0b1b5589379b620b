"""Community post endpoints.

Writes go through the intent pipeline: the author must hold a POAP, and
counters and milestones are updated after the post or like is stored.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from poapgate.dependencies import get_pipeline, get_store
from poapgate.errors import RecordNotFoundError
from poapgate.gamification.schemas import MilestoneDefinitionResponse
from poapgate.intents.pipeline import IntentPipeline
from poapgate.mirror.store import MirrorStore
from poapgate.social.schemas import (
    CreatePostRequest,
    CreatePostResponse,
    LikePostRequest,
    LikePostResponse,
    LikeResponse,
    PostListResponse,
    PostResponse,
)

router = APIRouter(prefix="/api/v1/posts", tags=["Posts"])


@router.get("", response_model=PostListResponse)
async def list_posts(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    author: str | None = Query(None),
    store: MirrorStore = Depends(get_store),  # noqa: B008
) -> PostListResponse:
    """Newest posts first, optionally by one author."""
    filters = {"user_address": author} if author else None
    posts = await store.posts.list(filter=filters, order=["-id"], limit=limit, offset=offset)
    total = await store.posts.count(filters)
    return PostListResponse(
        posts=[PostResponse.model_validate(p) for p in posts],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=CreatePostResponse, status_code=201)
async def create_post(
    body: CreatePostRequest,
    pipeline: IntentPipeline = Depends(get_pipeline),  # noqa: B008
) -> CreatePostResponse:
    """Publish a post. 403 without a POAP."""
    try:
        result = await pipeline.create_post(body.user_address, body.title, body.content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return CreatePostResponse(
        post=PostResponse.model_validate(result.record),
        milestones_awarded=[MilestoneDefinitionResponse.model_validate(m) for m in result.milestones_awarded],
    )


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: int,
    store: MirrorStore = Depends(get_store),  # noqa: B008
) -> PostResponse:
    post = await store.posts.get(id=post_id)
    if post is None:
        msg = f"Post {post_id} not found"
        raise RecordNotFoundError(msg)
    return PostResponse.model_validate(post)


@router.post("/{post_id}/likes", response_model=LikePostResponse, status_code=201)
async def like_post(
    post_id: int,
    body: LikePostRequest,
    pipeline: IntentPipeline = Depends(get_pipeline),  # noqa: B008
) -> LikePostResponse:
    """Like a post once. A repeat like is 409."""
    result = await pipeline.like_post(body.user_address, post_id)
    return LikePostResponse(
        like=LikeResponse.model_validate(result.record),
        milestones_awarded=[MilestoneDefinitionResponse.model_validate(m) for m in result.milestones_awarded],
    )
