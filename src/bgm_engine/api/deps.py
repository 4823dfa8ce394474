"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from bgm_engine.db.models import ContentModel
from bgm_engine.db.session import get_session

# Database session dependency
SessionDep = Annotated[Session, Depends(get_session)]


def get_content(content_id: UUID, session: SessionDep) -> ContentModel:
    """Load the content named in the path or answer 404."""
    content = session.get(ContentModel, content_id)
    if content is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Content not found: {content_id}",
        )
    return content


ContentDep = Annotated[ContentModel, Depends(get_content)]
