import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...api.dependencies import get_admin_user
from ...crud.contact_crud import contact_crud
from ...database.session import get_db
from ...models.contact import ContactMessage
from ...models.user import User
from ...schemas.contact import ContactCreate, ContactResponse

router = APIRouter(prefix="/contact", tags=["contact"])
logger = logging.getLogger(__name__)


def _to_response(message: ContactMessage) -> ContactResponse:
    return ContactResponse(
        id=str(message.id),
        name=message.name,
        email=message.email,
        message=message.message,
        created_at=message.created_at
    )


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def submit_contact(payload: ContactCreate, db: AsyncSession = Depends(get_db)):
    message = await contact_crud.create(db, payload)
    await db.commit()
    logger.info(f"Contact message received: id={message.id}, from={payload.email}")
    return _to_response(message)


@router.get("", response_model=List[ContactResponse])
async def list_contact_messages(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db)
):
    messages = await contact_crud.list_newest_first(db, skip=skip, limit=limit)
    logger.info(f"Contact messages listed by admin: user_id={admin.id}, count={len(messages)}")
    return [_to_response(m) for m in messages]
