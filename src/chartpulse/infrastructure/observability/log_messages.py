"""Structured log message templates for consistent, human-readable logging.

Hey future me - instead of "Error: All connection attempts failed" with no context, the
pipeline logs things like:

    ❌ import-new-artists Failed
    ├─ Reason: ConnectError: All connection attempts failed
    ├─ Status: Will run again at next firing
    └─ 💡 Check provider availability; the schedule is unaffected

Principles:
1. Icon first - quick visual scanning
2. Action/entity in the title
3. Context fields (job, provider, entity)
4. Actionable hint as the last line

Usage:
    from chartpulse.infrastructure.observability.log_messages import LogMessages

    logger.warning(LogMessages.provider_failed(
        provider="Last.fm", operation="artist.getInfo", entity="Beach House", error=str(e)
    ))
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class LogTemplate:
    """A log message rendered as title line plus a tree of fields and an optional hint."""

    icon: str
    title: str
    fields: dict[str, str]
    hint: str | None = None

    # Values are inserted verbatim. Provider error messages often contain braces
    # ("{'error': 6}"), so no str.format() pass happens here.
    def render(self) -> str:
        lines = [f"{self.icon} {self.title}"]

        field_items = list(self.fields.items())
        for i, (key, value) in enumerate(field_items):
            prefix = "└─" if i == len(field_items) - 1 and not self.hint else "├─"
            lines.append(f"{prefix} {key}: {value}")

        if self.hint:
            lines.append(f"└─ 💡 {self.hint}")

        return "\n".join(lines)


class LogMessages:
    """Collection of standardized log message templates.

    Template categories:
    - Scheduler lifecycle (start/stop)
    - Job runs (start/finish/failure)
    - Provider failures (transport, auth)
    - Import summaries
    """

    # === Scheduler Lifecycle ===

    @staticmethod
    def scheduler_started(jobs: dict[str, str]) -> str:
        """Format a scheduler start message.

        Args:
            jobs: Job name -> human-readable cadence
        """
        return LogTemplate(
            icon="✅",
            title="Chart Update Scheduler Started",
            fields={name: cadence for name, cadence in jobs.items()},
        ).render()

    @staticmethod
    def scheduler_stopped(job_count: int) -> str:
        return LogTemplate(
            icon="⏹️",
            title="Chart Update Scheduler Stopped",
            fields={"Cancelled jobs": str(job_count)},
        ).render()

    # === Job Runs ===

    @staticmethod
    def job_started(job: str, trigger: str = "schedule") -> str:
        """Format a job start message.

        Args:
            job: Job name
            trigger: What fired it ("schedule", "startup", "manual")
        """
        return LogTemplate(
            icon="🔄",
            title=f"Running {job}",
            fields={"Trigger": trigger},
        ).render()

    @staticmethod
    def job_completed(job: str, duration: float, next_run: Any | None = None) -> str:
        """Format a job completion message.

        Args:
            job: Job name
            duration: Run time in seconds
            next_run: Next scheduled firing, if known
        """
        fields = {"Duration": f"{duration:.1f}s"}
        if next_run is not None:
            fields["Next run"] = str(next_run)
        return LogTemplate(
            icon="✅",
            title=f"{job} Complete",
            fields=fields,
        ).render()

    @staticmethod
    def job_failed(job: str, error: str, hint: str | None = None) -> str:
        """Format a job failure message.

        Args:
            job: Job name
            error: Error description
            hint: Custom troubleshooting hint
        """
        return LogTemplate(
            icon="❌",
            title=f"{job} Failed",
            fields={"Reason": error, "Status": "Will run again at next firing"},
            hint=hint or "Check provider availability; the schedule is unaffected",
        ).render()

    # === Providers ===

    @staticmethod
    def provider_failed(
        provider: str,
        operation: str,
        entity: str,
        error: str,
        hint: str | None = None,
    ) -> str:
        """Format a soft provider failure (the entity keeps its existing data).

        Args:
            provider: Provider name (e.g., "Spotify", "Last.fm")
            operation: What we tried (e.g., "artist.getInfo", "get_by_id")
            entity: Artist/track name the call was for
            error: Error description
            hint: Custom troubleshooting hint
        """
        return LogTemplate(
            icon="⚠️",
            title=f"{provider} Lookup Failed",
            fields={"Operation": operation, "Entity": entity, "Reason": error},
            hint=hint or "Entity keeps its previous data; retried next cycle",
        ).render()

    @staticmethod
    def provider_auth_failed(provider: str, error: str) -> str:
        """Format a credentials-rejected message."""
        return LogTemplate(
            icon="🔑",
            title=f"{provider} Credentials Rejected",
            fields={"Reason": error},
            hint=f"Check the {provider} credentials in the CHARTPULSE_ environment",
        ).render()

    # === Imports ===

    @staticmethod
    def import_completed(
        source: str, processed: int, created: int = 0, errors: int = 0
    ) -> str:
        """Format an import summary.

        Args:
            source: Where entries came from (e.g., "Last.fm top artists", "tag:indie")
            processed: Entries processed
            created: New entities created
            errors: Entries that failed
        """
        icon = "✅" if errors == 0 else "⚠️"
        fields = {"Processed": str(processed), "Created": str(created)}
        if errors > 0:
            fields["Errors"] = str(errors)
        return LogTemplate(
            icon=icon,
            title=f"{source} Import Complete",
            fields=fields,
        ).render()
