from fastapi import APIRouter
from pydantic import BaseModel

from learnpath.core.auth import create_token

router = APIRouter()


class MockLogin(BaseModel):
    user_id: str


@router.post("/mock-login")
def mock_login(payload: MockLogin):
    token = create_token(payload.user_id)
    return {"access_token": token, "token_type": "bearer"}
