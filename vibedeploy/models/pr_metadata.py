"""Pull request metadata embedded in Slack messages."""

from pydantic import BaseModel, ConfigDict


class PRMetadata(BaseModel):
    """Pull request metadata read from a message's `event_payload`."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    pr_number: int = 0
    repository: str = ""  # 'org/name'
    pr_url: str = ""
    author: str = ""
    branch: str = ""
    event_action: str = ""

    def has_required_fields(self) -> bool:
        """Repository and branch are both needed to build a deployment."""
        return bool(self.repository) and bool(self.branch)
