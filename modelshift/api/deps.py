"""FastAPI dependencies for target model resolution and DB sessions."""

from typing import Iterator

from fastapi import Form, HTTPException
from sqlalchemy.orm import Session

from modelshift.core.config import settings
from modelshift.core.operator_registry import class_from_string
from modelshift.core.persistence import get_session


async def get_target_model(
    model: str = Form(..., description="Dotted path of the target model class")
) -> type:
    """Resolve the target model class from the form field.

    Only classes listed in settings.target_models may be loaded.
    Raises 400 if the class is not allowed or cannot be imported.
    """
    if model not in settings.target_models:
        raise HTTPException(
            status_code=400,
            detail=f"Model '{model}' is not an allowed import target",
        )
    klass = class_from_string(model)
    if klass is None:
        raise HTTPException(status_code=400, detail=f"Model '{model}' could not be imported")
    return klass


def get_db() -> Iterator[Session]:
    session = get_session()
    try:
        yield session
    finally:
        session.close()
