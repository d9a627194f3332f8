"""
Tag & workflow propagation for resolved contacts.

Applies [global tag] + fixed registration tags to the GHL contact, then, if
GHL_WORKFLOW_ID is set, enrolls the contact in that workflow. Tagging is the
primary effect. Both steps are best effort: failures are logged and reported
in the result, never raised, and nothing already applied is undone.

Re-applying the same tag set is assumed to be a no-op in GHL.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from api.services.errors import RemoteAPIError
from api.services.ghl_client import GHLClient
from api.services.global_settings import GlobalSettingsStore
from api.services.service_health import mark_service_failed, mark_service_healthy

logger = logging.getLogger(__name__)


@dataclass
class PropagationResult:
    """What propagation managed to apply."""
    contact_id: str
    tags: list[str] = field(default_factory=list)
    tagged: bool = False
    workflow_id: Optional[str] = None
    workflow_enrolled: bool = False
    errors: list[str] = field(default_factory=list)


def build_tag_list(global_tag: str, fixed_tags: list[str]) -> list[str]:
    """Global tag first, then fixed tags; blanks and repeats dropped."""
    tags = []
    for tag in [global_tag, *fixed_tags]:
        tag = (tag or "").strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class TagPropagator:
    """Pushes classification tags and workflow enrollment to GHL."""

    def __init__(
        self,
        client: GHLClient,
        settings_store: GlobalSettingsStore,
        default_tag: str,
        fixed_tags: list[str],
        workflow_id: Optional[str] = None,
    ):
        self.client = client
        self.settings_store = settings_store
        self.default_tag = default_tag
        self.fixed_tags = list(fixed_tags)
        self.workflow_id = workflow_id or None

    async def current_tags(self) -> list[str]:
        """Tags to apply right now. Re-reads the global tag every call."""
        global_tag = await asyncio.to_thread(self.settings_store.get_global_tag, self.default_tag)
        return build_tag_list(global_tag, self.fixed_tags)

    async def propagate(self, contact_id: str) -> PropagationResult:
        """Tag the contact and optionally enroll it in the configured workflow."""
        result = PropagationResult(contact_id=contact_id, workflow_id=self.workflow_id)
        result.tags = await self.current_tags()

        logger.info(f"Adding tags to contact {contact_id}: {result.tags}")
        try:
            await self.client.add_tags(contact_id, result.tags)
            result.tagged = True
            mark_service_healthy("ghl_tags")
        except RemoteAPIError as e:
            logger.error(f"GHL tag error for {contact_id}: {e} {e.body or ''}")
            mark_service_failed("ghl_tags", str(e))
            result.errors.append(str(e))
            # Untagged contacts are not enrolled
            return result

        if not self.workflow_id:
            return result

        logger.info(f"Triggering workflow ({self.workflow_id}) for contact {contact_id}...")
        try:
            await self.client.add_to_workflow(contact_id, self.workflow_id)
            result.workflow_enrolled = True
            mark_service_healthy("ghl_workflow")
            logger.info("Workflow triggered successfully")
        except RemoteAPIError as e:
            # Contact is already saved and tagged
            logger.error(f"Workflow trigger failed for {contact_id}: {e} {e.body or ''}")
            mark_service_failed("ghl_workflow", str(e))
            result.errors.append(str(e))

        return result
