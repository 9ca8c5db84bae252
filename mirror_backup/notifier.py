"""
Webhook notifications for backup runs

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests

DEFAULT_NOTIFY_TIMEOUT = 30
DEFAULT_MIN_INTERVAL = 5.0

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"
STATUS_CRASHED = "crashed"

STATUS_STYLES = {
    STATUS_SUCCESS: ("✅ Repository Backup Successful", "Good"),
    STATUS_FAILURE: ("❌ Repository Backup Failed", "Attention"),
    STATUS_CRASHED: ("💥 Repository Backup Crashed", "Attention"),
}


class Notifier:
    """
    Posts an adaptive-card status digest to a webhook (Teams / Power Automate).

    Without a webhook URL every call is a silent no-op. Delivery problems are
    logged and reported through the return value, never raised.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        timeout: int = DEFAULT_NOTIFY_TIMEOUT,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.webhook_url = webhook_url or None
        self.timeout = timeout
        self.min_interval = min_interval
        self.session = session or requests.Session()
        self.clock = clock
        self.last_sent_at: Optional[float] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def enabled(self) -> bool:
        return self.webhook_url is not None

    @staticmethod
    def workflow_context() -> Dict[str, str]:
        """CI metadata from the environment, when available"""
        repository = os.getenv("GITHUB_REPOSITORY", "")
        run_id = os.getenv("GITHUB_RUN_ID", "")
        server_url = os.getenv("GITHUB_SERVER_URL") or "https://github.com"

        context = {"repository": repository, "run_id": run_id, "workflow_url": ""}
        if repository and run_id:
            context["workflow_url"] = f"{server_url}/{repository}/actions/runs/{run_id}"
        return context

    def build_card(
        self,
        status: str,
        message: str,
        successful_repos: List[str],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        title, color = STATUS_STYLES.get(status, ("⚠️ Repository Backup Status", "Warning"))
        context = self.workflow_context()

        body: List[Dict[str, Any]] = [
            {
                "type": "TextBlock",
                "text": title,
                "weight": "Bolder",
                "size": "Large",
                "color": color,
            },
            {
                "type": "TextBlock",
                "text": f"{message} on {now.strftime('%Y-%m-%d')}",
                "wrap": True,
            },
        ]

        if context["workflow_url"]:
            body.append(
                {"type": "TextBlock", "text": f"[View Workflow]({context['workflow_url']})"}
            )

        facts = [
            {"title": "Timestamp:", "value": now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")},
            {"title": "Status:", "value": status.title()},
        ]
        if context["repository"]:
            facts.append({"title": "Repository:", "value": context["repository"]})
        if context["run_id"]:
            facts.append({"title": "Workflow Run ID:", "value": context["run_id"]})
        if successful_repos:
            facts.append(
                {"title": "Successful Repos:", "value": ", ".join(successful_repos)}
            )

        body.append({"type": "FactSet", "facts": facts})

        return {
            "type": "message",
            "attachments": [
                {
                    "contentType": "application/vnd.microsoft.card.adaptive",
                    "content": {
                        "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
                        "type": "AdaptiveCard",
                        "version": "1.3",
                        "body": body,
                    },
                }
            ],
        }

    def notify(
        self, status: str, message: str, successful_repos: Optional[List[str]] = None
    ) -> bool:
        """
        Send one status card.

        Returns:
            True if the webhook accepted it, False if disabled, rate limited
            or delivery failed
        """
        if not self.enabled:
            self.logger.debug("[NOTIFY] No webhook URL configured, skipping notification")
            return False

        now = self.clock()
        if self.last_sent_at is not None and now - self.last_sent_at < self.min_interval:
            self.logger.warning("[NOTIFY] Rate limiting webhook notifications")
            return False
        self.last_sent_at = now

        payload = self.build_card(status, message, successful_repos or [])

        try:
            response = self.session.post(
                self.webhook_url,
                json=payload,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        except requests.RequestException as e:
            self.logger.warning(f"[NOTIFY] Failed to send webhook: {type(e).__name__}")
            return False

        if not 200 <= response.status_code < 300:
            self.logger.warning(
                f"[NOTIFY] Webhook returned status code {response.status_code}"
            )
            return False

        self.logger.info(f"[NOTIFY] Webhook notification sent ({status})")
        return True
