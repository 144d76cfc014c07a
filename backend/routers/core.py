from fastapi import APIRouter

from backend.responses import success_response

router = APIRouter()


@router.get("/health")
def health():
    return success_response({"status": "ok"})
