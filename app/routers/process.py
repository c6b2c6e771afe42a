from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from app.models.models import NoOpportunities
from app.models.schemas import BusinessSubmission, ProcessResponse
from app.models.settings import RelaySettings
from app.services.graph import RelayWorkflow
from app.utils.logging_config import get_logger, log_api_call

router = APIRouter(tags=["process"])
logger = get_logger(__name__)


def get_settings() -> RelaySettings:
    return RelaySettings.from_env()


@router.post("/process", response_model=ProcessResponse)
@log_api_call("process submission")
async def process_submission(submission: BusinessSubmission):
    """Relay a business profile to the matching service and forward the top bandi to the webhook"""
    logger.info(f"Submission received for {submission.nome_azienda or 'unknown company'}")
    workflow = RelayWorkflow(get_settings())
    # blocking HTTP calls and the response delay run off the event loop
    state = await run_in_threadpool(workflow.run, submission)

    ranked = state["ranked"]
    if isinstance(ranked, NoOpportunities):
        return ProcessResponse(message=ranked.message, total_candidates=0)

    return ProcessResponse(
        message="Webhook inviato con successo.",
        total_candidates=ranked.total_candidates,
        results=ranked.results,
    )
