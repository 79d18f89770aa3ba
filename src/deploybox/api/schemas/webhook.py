"""Webhook payload schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class WebhookRepository(BaseModel):
    """Repository section of a push notification."""

    model_config = ConfigDict(extra="ignore")

    html_url: str | None = None
    clone_url: str | None = None

    def candidate_urls(self) -> list[str]:
        return [url for url in (self.html_url, self.clone_url) if url]


class WebhookPayload(BaseModel):
    """GitHub-style push notification; only the repository is used."""

    model_config = ConfigDict(extra="ignore")

    repository: WebhookRepository
