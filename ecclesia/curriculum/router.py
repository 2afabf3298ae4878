"""Foundation School module catalog endpoints."""

from fastapi import APIRouter

from ecclesia.core.errors import DomainError, handle_domain_error

from .dependencies import CurriculumServiceDep
from .schemas import ModuleDetailResponse, ModuleListResponse, ModuleSummaryResponse


router = APIRouter(prefix="/v1/foundation/modules", tags=["foundation-modules"])


@router.get("", response_model=ModuleListResponse, summary="List modules")
async def list_modules(service: CurriculumServiceDep) -> ModuleListResponse:
    modules = await service.list_active_modules()
    return ModuleListResponse(
        modules=[ModuleSummaryResponse.from_entity(m) for m in modules],
        total_modules=len(modules),
    )


@router.get(
    "/{module_number}",
    response_model=ModuleDetailResponse,
    summary="Get module",
)
async def get_module(
    module_number: int, service: CurriculumServiceDep
) -> ModuleDetailResponse:
    """Module content with quiz answers stripped."""
    try:
        module = await service.get_active_module(module_number)
    except DomainError as e:
        raise handle_domain_error(e) from e
    return ModuleDetailResponse.from_entity(module)
