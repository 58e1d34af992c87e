from fastapi import APIRouter

router = APIRouter(prefix="/api", tags=["root"])

@router.get("/")
async def api_root():
    return {"success": True, "message": "Nano Bananary API"}

@router.get("/health")
async def health():
    return {"success": True, "status": "ok"}
