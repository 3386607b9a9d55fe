"""
Third-party integrations: OAuth connection and GitHub issue sync.
"""

from datetime import timedelta
from typing import Any, Optional

import httpx

from taskquest.config import Settings, get_settings
from taskquest.connectors.github import GitHubAPIError, GitHubClient, labels_to_priority
from taskquest.connectors.oauth import OAuthClient
from taskquest.models.enums import Complexity, OAuthProvider
from taskquest.models.integrations import SyncMapping, SyncResult
from taskquest.services.base import UserScopedService
from taskquest.storage.base import StorageError
from taskquest.utils.timeutils import parse_timestamp

GITHUB_PROVIDER = "github"
GITHUB_ISSUE_TYPE = "github_issue"
TASKS_TABLE = "tasks"


class IntegrationNotFoundError(LookupError):
    """Raised when an integration id does not belong to the current user."""

    pass


def _issue_metadata(issue: dict, integration_id: str) -> dict[str, Any]:
    return {
        "issue_id": issue.get("id"),
        "issue_number": issue.get("number"),
        "repository": issue.get("repository_url"),
        "url": issue.get("html_url"),
        "updated_at": issue.get("updated_at"),
        "integration_id": integration_id,
    }


def _issue_status(issue: dict) -> str:
    return "todo" if issue.get("state") == "open" else "completed"


class IntegrationService(UserScopedService):
    """
    Connects providers through OAuth and imports their items as tasks.

    Args:
        settings: Provider credentials and timeouts (defaults to global settings)
        transport: httpx transport shared by the OAuth and GitHub clients
    """

    def __init__(
        self,
        storage,
        user_id,
        now=None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(storage, user_id, now)
        self.settings = settings or get_settings()
        self.transport = transport
        self.oauth = OAuthClient(self.settings, transport=transport)

    # =========================================================================
    # Connection
    # =========================================================================

    def list_integrations(self) -> list[dict]:
        rows = self.fetcher.rows("api_integrations", ordering=[("created_at", False)])
        return [self._public(row) for row in rows]

    def get_integration(self, integration_id: str) -> dict:
        rows = self.fetcher.rows(
            "api_integrations",
            extra_filters=[("id", "eq", integration_id)],
            limit=1,
        )
        if not rows:
            raise IntegrationNotFoundError(f"Integration {integration_id} not found")
        return rows[0]

    def authorize_url(self, provider: OAuthProvider, state: str, redirect_uri: Optional[str] = None) -> str:
        return self.oauth.build_authorize_url(provider, state, redirect_uri=redirect_uri)

    async def connect(
        self,
        provider: OAuthProvider,
        code: str,
        redirect_uri: str,
        config: Optional[dict] = None,
    ) -> dict:
        """Exchange the callback code and store the resulting integration."""
        provider = OAuthProvider(provider)
        tokens = await self.oauth.exchange_code(provider, code, redirect_uri)
        expires_at = self.now + timedelta(seconds=tokens.expires_in) if tokens.expires_in else None
        row = self.storage.insert(
            "api_integrations",
            [{
                "user_id": self.user_id,
                "provider": provider.value,
                "config": config or {},
                "access_token": tokens.access_token,
                "refresh_token": tokens.refresh_token,
                "expires_at": expires_at,
                "scope": tokens.scope,
                "error_count": 0,
                "created_at": self.now,
            }],
        )[0]
        self.logger.info("integration_connected", provider=provider.value, integration_id=row["id"])
        return self._public(row)

    @staticmethod
    def _public(row: dict) -> dict:
        return {k: v for k, v in row.items() if k not in ("access_token", "refresh_token")}

    # =========================================================================
    # Sync
    # =========================================================================

    async def sync(self, integration_id: str) -> SyncResult:
        integration = self.get_integration(integration_id)
        provider = integration.get("provider")
        if provider == GITHUB_PROVIDER:
            result = await self.sync_github(integration)
        else:
            result = SyncResult(errors=[f"Sync not implemented for {provider}"])

        self.storage.update(
            "api_integrations",
            {
                "last_sync_at": self.now,
                "error_count": len(result.errors),
                "last_error": result.errors[-1] if result.errors else None,
            },
            [("id", "eq", integration_id), ("user_id", "eq", self.user_id)],
        )
        return result

    async def sync_github(self, integration: dict) -> SyncResult:
        """
        Import issues of every configured repository.

        Issues already mapped to a task update that task; new issues create
        a task plus a sync mapping, so resyncing never duplicates tasks.
        A task imported by an earlier sync whose mapping was never written
        is adopted by issue id instead of being imported again.
        Failures are collected per repository.
        """
        result = SyncResult(success=True)
        repositories = (integration.get("config") or {}).get("repositories") or []
        imported = self._imported_issues(integration["id"])

        async with GitHubClient(
            integration.get("access_token") or "",
            base_url=self.settings.github_api_base_url,
            timeout=self.settings.http_timeout_seconds,
            transport=self.transport,
        ) as client:
            for repo in repositories:
                try:
                    issues = await client.list_issues(repo)
                except GitHubAPIError as e:
                    result.errors.append(f"Failed to fetch issues from {repo}: {e}")
                    continue

                result.records_processed += len(issues)
                try:
                    for issue in issues:
                        self._import_issue(integration, issue, imported, result)
                except StorageError as e:
                    result.errors.append(f"Error syncing repository {repo}: {e}")

        result.success = not result.errors
        self.logger.info(
            "github_sync_completed",
            integration_id=integration.get("id"),
            repositories=len(repositories),
            created=result.tasks_created,
            updated=result.tasks_updated,
            errors=len(result.errors),
        )
        return result

    def _imported_issues(self, integration_id: str) -> dict[str, str]:
        """Task id per GitHub issue id for tasks this integration imported."""
        tasks = self.fetcher.rows(TASKS_TABLE, extra_filters=[("source", "eq", GITHUB_PROVIDER)])
        imported = {}
        for task in tasks:
            metadata = task.get("source_metadata") or {}
            if metadata.get("integration_id") == integration_id and metadata.get("issue_id") is not None:
                imported[str(metadata["issue_id"])] = task["id"]
        return imported

    def _issue_fields(self, issue: dict, integration_id: str) -> dict[str, Any]:
        closed = issue.get("state") != "open"
        completed_at = None
        if closed:
            completed_at = parse_timestamp(issue.get("closed_at")) or self.now
        return {
            "title": issue.get("title"),
            "description": issue.get("body") or "",
            "priority": labels_to_priority(issue.get("labels")).value,
            "status": _issue_status(issue),
            "completed": closed,
            "completed_at": completed_at,
            "source_metadata": _issue_metadata(issue, integration_id),
        }

    def _import_issue(
        self,
        integration: dict,
        issue: dict,
        imported: dict[str, str],
        result: SyncResult,
    ) -> None:
        integration_id = integration["id"]
        external_id = str(issue["id"])
        existing = self.storage.query(
            "sync_mappings",
            filters=[
                ("integration_id", "eq", integration_id),
                ("local_table", "eq", TASKS_TABLE),
                ("external_id", "eq", external_id),
            ],
            limit=1,
        )
        fields = self._issue_fields(issue, integration_id)

        if existing:
            self._update_task(existing[0]["local_record_id"], fields)
            result.tasks_updated += 1
            return

        task_id = imported.get(external_id)
        if task_id is not None:
            self.logger.warning("github_issue_adopted", issue_id=external_id, task_id=task_id)
            self._update_task(task_id, fields)
            result.tasks_updated += 1
        else:
            task = self.storage.insert(
                TASKS_TABLE,
                [{
                    **fields,
                    "user_id": self.user_id,
                    "complexity": Complexity.MODERATE.value,
                    "source": GITHUB_PROVIDER,
                    "created_at": self.now,
                }],
            )[0]
            task_id = imported[external_id] = task["id"]
            result.tasks_created += 1

        mapping_id = self.storage.rpc(
            "create_sync_mapping",
            {
                "p_integration_id": integration_id,
                "p_local_table": TASKS_TABLE,
                "p_local_record_id": task_id,
                "p_external_id": external_id,
                "p_external_type": GITHUB_ISSUE_TYPE,
            },
        )
        mapping = self.storage.query("sync_mappings", filters=[("id", "eq", mapping_id)], limit=1)
        if mapping:
            result.sync_mappings.append(SyncMapping(**mapping[0]))

    def _update_task(self, task_id: str, fields: dict[str, Any]) -> None:
        self.storage.update(
            TASKS_TABLE,
            {**fields, "updated_at": self.now},
            [("id", "eq", task_id), ("user_id", "eq", self.user_id)],
        )
