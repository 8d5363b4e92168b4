# allocgov/api/routes_applications.py
"""
Application API routes.

Endpoints for creating applications, driving them through governance review
and notary sign-off, staging refills and archiving applications whose total
has been granted.
"""

from dataclasses import asdict
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from ..errors import LifecycleError
from ..lifecycle.directory import ApplicationDirectory
from ..lifecycle.engine import LifecycleEngine
from ..lifecycle.events import utc_now
from ..lifecycle.models import Amount, Signer
from ..logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/application", tags=["application"])


def get_engine(request: Request) -> LifecycleEngine:
    return request.app.state.services.engine


def get_directory(request: Request) -> ApplicationDirectory:
    return request.app.state.services.directory


class CreateApplicationRequest(BaseModel):
    """Request to start an application from an issue."""
    issue_number: Union[int, str]


class TriggerRequest(BaseModel):
    """Governance review sign-off."""
    actor: str


class SignerInfo(BaseModel):
    """A notary signature on the active allocation request."""
    signing_address: str
    message_reference: str  # On-chain message CID
    actor_identity: str
    time_of_signature: Optional[str] = None

    def to_signer(self) -> Signer:
        return Signer(
            signing_address=self.signing_address,
            time_of_signature=self.time_of_signature or utc_now(),
            message_reference=self.message_reference,
            actor_identity=self.actor_identity,
        )


class SignRequest(BaseModel):
    """Request to propose or approve an allocation request."""
    signer: SignerInfo
    request_id: str


class RefillItem(BaseModel):
    """One refill in a batch, e.g. {"id": "42", "amount": "100", "amount_type": "TiB"}."""
    id: str
    amount: str
    amount_type: str


def _amount(item: RefillItem) -> Amount:
    try:
        return Amount(quantity=item.amount.strip(), unit=item.amount_type.strip())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid refill amount for {item.id}: {e}")


@router.post("")
async def create_application(
    request: CreateApplicationRequest,
    engine: LifecycleEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Create an application from an issue.

    Commits the GovernanceReview document to a new staging branch and
    opens its pull request.
    """
    application = await engine.create_application(str(request.issue_number))
    return application.to_document()


@router.post("/{application_id}/trigger")
async def trigger_application(
    application_id: str,
    request: TriggerRequest,
    engine: LifecycleEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Complete governance review; the application becomes ReadyToSign."""
    application = await engine.complete_governance_review(application_id, actor=request.actor)
    return application.to_document()


@router.post("/{application_id}/propose")
async def propose_application(
    application_id: str,
    request: SignRequest,
    engine: LifecycleEngine = Depends(get_engine),
) -> Dict[str, Any]:
    application = await engine.propose(
        application_id, signer=request.signer.to_signer(), request_id=request.request_id
    )
    return application.to_document()


@router.post("/{application_id}/approve")
async def approve_application(
    application_id: str,
    request: SignRequest,
    engine: LifecycleEngine = Depends(get_engine),
) -> Dict[str, Any]:
    application = await engine.approve(
        application_id, signer=request.signer.to_signer(), request_id=request.request_id
    )
    return application.to_document()


@router.get("/active")
async def list_active(
    id: Optional[str] = Query(default=None),
    directory: ApplicationDirectory = Depends(get_directory),
) -> List[Dict[str, Any]]:
    """Applications staged on open pull requests, optionally one id only."""
    applications = await directory.list_active(filter_id=id)
    return [a.to_document() for a in applications]


@router.get("/merged")
async def list_merged(
    directory: ApplicationDirectory = Depends(get_directory),
) -> List[Dict[str, Any]]:
    """Active applications on the main line that are not staged again."""
    applications = await directory.list_merged()
    return [a.to_document() for a in applications]


@router.post("/refill")
async def refill_applications(
    items: List[RefillItem],
    engine: LifecycleEngine = Depends(get_engine),
) -> List[Dict[str, Any]]:
    """
    Stage refills for a batch of merged applications.

    Each item succeeds or fails on its own; failures are reported per item
    with their error kind.
    """
    amounts = [_amount(item) for item in items]
    results: List[Dict[str, Any]] = []
    for item, amount in zip(items, amounts):
        try:
            application = await engine.refill(item.id, amount)
        except LifecycleError as e:
            logger.warning("refill_rejected", application_id=item.id, kind=e.kind.value, reason=e.reason)
            results.append({"id": item.id, "error": e.to_dict()})
            continue
        results.append({"id": item.id, "application": application.to_document()})
    return results


@router.post("/totaldcreached/sweep")
async def sweep_total_reached(
    engine: LifecycleEngine = Depends(get_engine),
    directory: ApplicationDirectory = Depends(get_directory),
) -> Dict[str, Any]:
    """Archive every merged Granted application whose total has been granted."""
    report = await engine.sweep_total_reached(await directory.list_merged())
    return asdict(report)


@router.post("/{application_id}/totaldcreached")
async def check_total_reached(
    application_id: str,
    engine: LifecycleEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Archive one merged application if its total has been granted."""
    archived = await engine.check_total_reached(application_id)
    return {"id": application_id, "archived": archived}
