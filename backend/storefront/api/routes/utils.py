"""
工具路由模块

提供健康检查、国际电话区号等系统工具类接口。
"""
from fastapi import APIRouter

from storefront.api.schemas import ApiEnvelope

router = APIRouter(prefix="/utils", tags=["utils"])

DIAL_CODES = [
    {"label": "+886 臺灣", "value": "+886"},
    {"label": "+852 香港", "value": "+852"},
    {"label": "+853 澳門", "value": "+853"},
]


@router.get("/health-check/")
async def health_check() -> bool:
    """
    健康检查端点

    请求路径: GET /api/v1/utils/health-check/
    """
    return True


@router.get("/dial-codes", response_model=ApiEnvelope)
async def dial_codes() -> ApiEnvelope:
    return ApiEnvelope(data={"codes": DIAL_CODES})
