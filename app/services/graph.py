from typing import Any, Dict, Optional, TypedDict, Union

from langgraph.graph import StateGraph, END

from app.models.models import RankedResult, NoOpportunities
from app.models.schemas import BusinessSubmission
from app.models.settings import RelaySettings
from app.services.pipeline import RankingPipeline
from app.services.relay import (
    MatchingServiceClient, build_submission_xml, format_webhook_payload, deliver_webhook
)
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


# LangGraph state and nodes
class RelayState(TypedDict, total=False):
    submission: BusinessSubmission
    uploaded: bool
    response_xml: str
    ranked: Union[RankedResult, NoOpportunities]
    webhook_payload: Optional[Dict[str, str]]
    delivered: bool


class RelayWorkflow:
    """upload -> fetch -> rank -> deliver, for one submission."""

    def __init__(self, settings: RelaySettings, client: MatchingServiceClient = None,
                 pipeline: RankingPipeline = None):
        self.settings = settings
        self.client = client or MatchingServiceClient(settings)
        self.pipeline = pipeline or RankingPipeline(settings)

    def node_upload(self, state: RelayState):
        xml_payload = build_submission_xml(state["submission"])
        logger.debug(f"Submission XML built:\n{xml_payload}")
        self.client.upload(xml_payload)
        return {"uploaded": True}

    def node_fetch(self, state: RelayState):
        self.client.wait_for_response()
        return {"response_xml": self.client.fetch_response()}

    def node_rank(self, state: RelayState):
        profile = state["submission"].to_profile()
        return {"ranked": self.pipeline.rank(profile, state["response_xml"])}

    def node_deliver(self, state: RelayState):
        ranked = state["ranked"]
        payload = format_webhook_payload(ranked.results, ranked.total_candidates, state["submission"].email)
        logger.info(f"Webhook payload: {payload}")
        deliver_webhook(payload, self.settings)
        return {"webhook_payload": payload, "delivered": True}

    @staticmethod
    def route_after_rank(state: RelayState) -> str:
        if isinstance(state["ranked"], NoOpportunities):
            return END
        return "deliver"

    def build_graph(self):
        g = StateGraph(RelayState)
        g.add_node("upload", self.node_upload)
        g.add_node("fetch", self.node_fetch)
        g.add_node("rank", self.node_rank)
        g.add_node("deliver", self.node_deliver)
        g.set_entry_point("upload")
        g.add_edge("upload", "fetch")
        g.add_edge("fetch", "rank")
        g.add_conditional_edges("rank", self.route_after_rank, {"deliver": "deliver", END: END})
        g.add_edge("deliver", END)
        return g.compile()

    def run(self, submission: BusinessSubmission) -> Dict[str, Any]:
        final = self.build_graph().invoke({"submission": submission, "delivered": False})
        return dict(final)
