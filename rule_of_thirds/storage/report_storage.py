"""Report artifacts on disk, with an optional Google Sheets index."""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

from rule_of_thirds.core.config import Settings
from rule_of_thirds.core.exceptions import StorageError
from rule_of_thirds.domain.models import OrchestrationReport, ReportOutputs
from rule_of_thirds.utils import slugify

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
LLM_FALLBACK_NOTE = "LLM synthesis unavailable - the enriched prompt is kept in the combined report for manual analysis"


def _check(flag: bool) -> str:
    return "✅" if flag else "❌"


def render_human_summary(report: OrchestrationReport) -> str:
    """Markdown summary of one report, prompts included for manual follow-up."""
    synthesis = report.synthesis
    lines = [
        "# Rule of Thirds Analysis Summary",
        "",
        f"**Topic**: {report.topic}",
        f"**Focus Area**: {report.focus or 'General'}",
        f"**Generated**: {report.timestamp.strftime('%Y-%m-%d %H:%M:%S %Z')}",
        f"**Execution Time**: {report.execution_time_ms}ms",
    ]

    llm = synthesis.llm_synthesis if synthesis else None
    if llm is not None and llm.content:
        lines += ["", "## AI Strategic Synthesis", "", llm.content, ""]
        lines += [f"*Generated by {llm.model} in {llm.execution_time_ms}ms*", "", "---"]
    elif llm is not None and llm.error:
        lines += ["", "## AI Synthesis Status", "", f"LLM synthesis failed: {llm.error}", "", LLM_FALLBACK_NOTE, "", "---"]

    status = report.collector_status
    lines += [
        "",
        "## Coverage Assessment",
        f"- **Total Signals Collected**: {report.total_signal_count}",
        f"- **Collector Success Rate**: {report.successful_collector_count}/{report.TOTAL_COLLECTORS} collectors successful",
        f"- **External Signals**: {_check(status['external'])}",
        f"- **Internal Research**: {_check(status['internal'])}",
        f"- **Product Metrics**: {_check(status['product'])}",
    ]

    if synthesis is None:
        lines += ["", f"Synthesis unavailable: {report.synthesis_error or 'unknown error'}"]
        return "\n".join(lines) + "\n"

    lines += [
        "",
        "## Key Insights Summary",
        "",
        "### Signal Strength Assessment",
        f"{synthesis.quality_assessment.signal_reliability} reliability, "
        f"{synthesis.quality_assessment.analysis_confidence} analysis confidence",
        "",
        "### Cross-Reference Opportunities",
        f"{len(synthesis.cross_references)} opportunities identified for cross-validation",
    ]
    lines += [f"- {opportunity.description} ({opportunity.priority})" for opportunity in synthesis.cross_references]
    lines += [
        "",
        "---",
        "",
        "## Analysis Prompts",
        "",
        "### Primary Synthesis Prompt:",
        synthesis.prompts.primary_synthesis,
        "",
        "### Cross-Reference Analysis:",
        synthesis.prompts.cross_reference,
        "",
        "### Actionable Insights Generation:",
        synthesis.prompts.actionable_insights,
        "",
        "### Risk Assessment:",
        synthesis.prompts.risk_assessment,
    ]
    return "\n".join(lines) + "\n"


class ReportStorage:
    """Writes the six artifacts of a report and optionally indexes it in Google Sheets."""

    SHEET_NAME = "Saved_Reports"
    SHEET_HEADERS = ["timestamp", "topic", "focus", "total_signals", "successful_collectors", "combined_report"]

    def __init__(
        self,
        output_dir: str | Path,
        sheets_client: gspread.Client | None = None,
        spreadsheet_id: str | None = None,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.sheets_client = sheets_client
        self.spreadsheet_id = spreadsheet_id

    @classmethod
    def from_settings(cls, settings: Settings) -> ReportStorage:
        client: gspread.Client | None = None
        if settings.GOOGLE_CREDENTIALS and settings.SHEET_ID:
            try:
                credentials = Credentials.from_service_account_info(
                    json.loads(settings.GOOGLE_CREDENTIALS),
                    scopes=SHEETS_SCOPES,
                )
                client = gspread.authorize(credentials)
            except (json.JSONDecodeError, ValueError, TypeError) as credential_error:
                logger.error("Failed to parse Google credentials payload: %s", credential_error)
            except gspread.exceptions.GSpreadException as gspread_error:
                logger.error("Failed to authorise Google Sheets client: %s", gspread_error)
        return cls(settings.OUTPUT_DIR, sheets_client=client, spreadsheet_id=settings.SHEET_ID)

    def base_filename(self, report: OrchestrationReport) -> str:
        stamp = report.timestamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        return f"{slugify(report.topic)}_{stamp}"

    def _artifacts(self, report: OrchestrationReport) -> dict[str, str]:
        payload = report.model_dump(mode="json")
        combined = {
            "timestamp": payload["timestamp"],
            "topic": report.topic,
            "focus": report.focus,
            "total_signal_count": report.total_signal_count,
            "successful_collector_count": report.successful_collector_count,
            "external": payload["external"],
            "internal": payload["internal"],
            "product": payload["product"],
            "synthesis": payload["synthesis"],
            "synthesis_error": report.synthesis_error,
        }
        metadata = {
            "timestamp": payload["timestamp"],
            "execution_time_ms": report.execution_time_ms,
            "total_collectors": report.TOTAL_COLLECTORS,
            "successful_collectors": report.successful_collector_count,
            "total_signals": report.total_signal_count,
            "collector_status": report.collector_status,
        }
        return {
            "combined_insight_report.json": json.dumps(combined, indent=2),
            "human_readable_summary.md": render_human_summary(report),
            "external_signals.json": json.dumps(payload["external"], indent=2),
            "internal_signals.json": json.dumps(payload["internal"], indent=2),
            "product_signals.json": json.dumps(payload["product"], indent=2),
            "orchestration_metadata.json": json.dumps(metadata, indent=2),
        }

    def _write_files(self, base: str, artifacts: dict[str, str]) -> list[Path]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []
        for suffix, content in artifacts.items():
            path = self.output_dir / f"{base}_{suffix}"
            path.write_text(content, encoding="utf-8")
            written.append(path)
        return written

    def _append_index_row(self, row: list[Any]) -> None:
        if self.sheets_client is None or not self.spreadsheet_id:
            return
        spreadsheet = self.sheets_client.open_by_key(self.spreadsheet_id)
        try:
            worksheet = spreadsheet.worksheet(self.SHEET_NAME)
        except gspread.exceptions.WorksheetNotFound:
            worksheet = spreadsheet.add_worksheet(title=self.SHEET_NAME, rows=1000, cols=len(self.SHEET_HEADERS))
            worksheet.append_row(self.SHEET_HEADERS)
        worksheet.append_row(row)

    async def save(self, report: OrchestrationReport) -> ReportOutputs:
        """
        Write every artifact for ``report`` under the output directory.

        Returns:
            The written file names and the paths of the two main artifacts.

        Raises:
            StorageError: If any file cannot be written. Sheets failures
                are logged and only clear ``indexed_in_sheets``.
        """
        base = self.base_filename(report)
        try:
            written = await asyncio.to_thread(self._write_files, base, self._artifacts(report))
        except OSError as exc:
            raise StorageError(f"Failed to write report artifacts to {self.output_dir}: {exc}") from exc
        logger.info("Generated %d output files in %s", len(written), self.output_dir)

        combined = str(written[0])
        indexed = False
        if self.sheets_client is not None and self.spreadsheet_id:
            row = [
                datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
                report.topic,
                report.focus or "",
                report.total_signal_count,
                report.successful_collector_count,
                combined,
            ]
            try:
                await asyncio.to_thread(self._append_index_row, row)
                indexed = True
            except (gspread.exceptions.GSpreadException, GoogleAuthError, OSError) as sheet_error:
                logger.error("Failed to index report in Google Sheets: %s", sheet_error)

        return ReportOutputs(
            directory=str(self.output_dir),
            files=[path.name for path in written],
            combined_report=combined,
            human_summary=str(written[1]),
            indexed_in_sheets=indexed,
        )
