from fastapi import APIRouter, Depends, Form, HTTPException, Request
from pydantic import BaseModel
from typing import Optional

from core.dispatcher import ConversionDispatcher, InvalidSourceURLError
from core.status import StatusQuery

router = APIRouter(tags=["conversion"])


class ConvertResponse(BaseModel):
    task_id: str
    status: str


class StatusResponse(BaseModel):
    status: str
    filename: Optional[str] = None
    thumbnail: Optional[str] = None
    error: Optional[str] = None


def get_dispatcher(request: Request) -> ConversionDispatcher:
    return request.app.state.dispatcher


def get_status_query(request: Request) -> StatusQuery:
    return request.app.state.status_query


@router.post("/convert", response_model=ConvertResponse)
async def convert(
    youtube_url: str = Form(...),
    dispatcher: ConversionDispatcher = Depends(get_dispatcher),
):
    """Starts a conversion in the background and returns its task id."""
    try:
        task_id = dispatcher.submit(youtube_url)
    except InvalidSourceURLError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ConvertResponse(task_id=task_id, status="processing")


@router.get("/status/{task_id}", response_model=StatusResponse, response_model_exclude_none=True)
async def check_status(task_id: str, status_query: StatusQuery = Depends(get_status_query)):
    return status_query.status(task_id)
