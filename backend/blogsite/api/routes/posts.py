import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ...api.dependencies import get_current_user
from ...core.config import settings
from ...database.session import get_db
from ...models.user import User
from ...schemas.post import (
    CommentCreate,
    CommentEnvelope,
    LikeToggleResponse,
    MessageResponse,
    PostEnvelope,
    PostResponse,
)
from ...services.engagement_service import engagement_service
from ...services.post_service import ImageUpload, post_service, to_comment_response, to_post_response
from ...services.storage_service import PostStorageService, get_storage_service

router = APIRouter(prefix="/blogs", tags=["blogs"])
logger = logging.getLogger(__name__)


async def _read_upload(image: Optional[UploadFile]) -> Optional[ImageUpload]:
    """Read at most one byte past the limit so oversize files fail validation without buffering them whole."""
    if image is None or not image.filename:
        return None
    try:
        data = await image.read(settings.MAX_IMAGE_BYTES + 1)
    finally:
        await image.close()
    return ImageUpload(data=data, content_type=image.content_type, filename=image.filename)


@router.get("", response_model=List[PostResponse])
async def list_posts(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    storage: PostStorageService = Depends(get_storage_service)
):
    posts = await post_service.list_posts(db, search=search, category=category)
    return [to_post_response(post, storage) for post in posts]


@router.get("/uploads/{storage_id:path}")
async def redirect_to_upload(
    storage_id: str,
    storage: PostStorageService = Depends(get_storage_service)
):
    return RedirectResponse(url=storage.url_for(storage_id), status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: str,
    db: AsyncSession = Depends(get_db),
    storage: PostStorageService = Depends(get_storage_service)
):
    post = await post_service.get_post(db, post_id)
    return to_post_response(post, storage)


@router.post("", response_model=PostEnvelope, status_code=status.HTTP_201_CREATED)
async def create_post(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: PostStorageService = Depends(get_storage_service)
):
    logger.info(f"Post create request: user_id={current_user.id}, has_image={image is not None}")
    post = await post_service.create_post(
        db,
        storage,
        current_user,
        fields={"title": title, "description": description, "content": content, "category": category},
        image=await _read_upload(image)
    )
    return PostEnvelope(message="Blog created successfully", post=to_post_response(post, storage))


@router.put("/{post_id}", response_model=PostEnvelope)
async def update_post(
    post_id: str,
    background_tasks: BackgroundTasks,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    removeImage: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: PostStorageService = Depends(get_storage_service)
):
    post = await post_service.update_post(
        db,
        storage,
        current_user,
        post_id,
        fields={"title": title, "description": description, "content": content, "category": category},
        image=await _read_upload(image),
        remove_image=removeImage,
        background_tasks=background_tasks
    )
    return PostEnvelope(message="Blog updated successfully", post=to_post_response(post, storage))


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: PostStorageService = Depends(get_storage_service)
):
    await post_service.delete_post(db, storage, current_user, post_id, background_tasks=background_tasks)
    return MessageResponse(message="Blog deleted successfully")


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    post_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    liked, like_count = await engagement_service.toggle_like(db, current_user, post_id)
    return LikeToggleResponse(liked=liked, like_count=like_count)


@router.post("/{post_id}/comment", response_model=CommentEnvelope)
async def add_comment(
    post_id: str,
    payload: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    comment = await engagement_service.add_comment(db, current_user, post_id, payload.text)
    return CommentEnvelope(message="Comment added successfully", comment=to_comment_response(comment))


@router.delete("/{post_id}/comment/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    post_id: str,
    comment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await engagement_service.delete_comment(db, current_user, post_id, comment_id)
    return MessageResponse(message="Comment deleted successfully")
