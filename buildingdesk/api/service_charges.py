from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..api.dependencies import get_context
from ..constants import DemandStatus, IncomeSource
from ..schemas.schemas import (
    DemandCreate,
    DemandGenerate,
    Flat,
    FlatCreate,
    IncomeEntry,
    ManualPenaltyCreate,
    PaymentCreate,
    PenaltyRunRequest,
    PenaltyRunResult,
    ServiceChargeDemand,
)
from ..services import service_charges as service_charge_service
from ..services.context import WorkflowContext

router = APIRouter()


@router.get("/flats", response_model=List[Flat])
def list_flats(ctx: WorkflowContext = Depends(get_context)) -> List[Flat]:
    return service_charge_service.list_flats(ctx)


@router.post("/flats", response_model=Flat, status_code=status.HTTP_201_CREATED)
def register_flat(payload: FlatCreate, ctx: WorkflowContext = Depends(get_context)) -> Flat:
    return service_charge_service.register_flat(ctx, payload)


@router.get("/income", response_model=List[IncomeEntry])
def list_income(
    source: Optional[IncomeSource] = Query(default=None),
    ctx: WorkflowContext = Depends(get_context),
) -> List[IncomeEntry]:
    return service_charge_service.list_income(ctx, source=source)


@router.post("/penalties/run", response_model=PenaltyRunResult)
def run_penalties(payload: PenaltyRunRequest, ctx: WorkflowContext = Depends(get_context)) -> PenaltyRunResult:
    as_of = payload.as_of or ctx.now().date()
    penalized = service_charge_service.check_and_apply_penalties(ctx, as_of)
    return PenaltyRunResult(as_of=as_of, penalized_demand_ids=penalized)


@router.post("/generate", response_model=List[ServiceChargeDemand], status_code=status.HTTP_201_CREATED)
def generate_demands(
    payload: DemandGenerate, ctx: WorkflowContext = Depends(get_context)
) -> List[ServiceChargeDemand]:
    return service_charge_service.generate_demands(ctx, payload)


@router.get("/", response_model=List[ServiceChargeDemand])
def list_demands(
    status_filter: Optional[DemandStatus] = Query(default=None, alias="status"),
    ctx: WorkflowContext = Depends(get_context),
) -> List[ServiceChargeDemand]:
    return service_charge_service.list_demands(ctx, status=status_filter)


@router.post("/", response_model=ServiceChargeDemand, status_code=status.HTTP_201_CREATED)
def create_demand(payload: DemandCreate, ctx: WorkflowContext = Depends(get_context)) -> ServiceChargeDemand:
    return service_charge_service.create_demand(ctx, payload)


@router.get("/{demand_id}", response_model=ServiceChargeDemand)
def get_demand(demand_id: str, ctx: WorkflowContext = Depends(get_context)) -> ServiceChargeDemand:
    return service_charge_service.get_demand(ctx, demand_id)


@router.post("/{demand_id}/payments", response_model=ServiceChargeDemand)
def record_payment(
    demand_id: str, payload: PaymentCreate, ctx: WorkflowContext = Depends(get_context)
) -> ServiceChargeDemand:
    return service_charge_service.record_payment(ctx, demand_id, payload)


@router.post("/{demand_id}/penalties", response_model=ServiceChargeDemand)
def apply_manual_penalty(
    demand_id: str, payload: ManualPenaltyCreate, ctx: WorkflowContext = Depends(get_context)
) -> ServiceChargeDemand:
    return service_charge_service.apply_manual_penalty(ctx, demand_id, payload.amount)


@router.post("/{demand_id}/reminders", response_model=ServiceChargeDemand)
def send_reminder(demand_id: str, ctx: WorkflowContext = Depends(get_context)) -> ServiceChargeDemand:
    return service_charge_service.send_reminder(ctx, demand_id)
