"""
Run summaries for export and import runs.

Formats the per-category execution summary written into the bundle (a
headline with counts and duration followed by a CSV table of records), and
builds the run report shown on the console or saved as JSON.
"""

import csv
import io
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from models import CATEGORY_BINARIES, CATEGORY_DOCUMENTS, MigrationRecord, Result

logger = logging.getLogger('content_exim.orchestrator.migration_report')

BANNER_WIDTH = 111
CSV_HEADER = ['SEQ', 'PROCESSED', 'SUCCEEDED', 'ID', 'PATH', 'TYPE', 'ATTRIBUTES', 'ERROR']


def _flag(value: bool) -> str:
    return 'true' if value else 'false'


def _format_attributes(attributes: Dict[str, Any]) -> str:
    return '{' + ', '.join(f"{key}={value}" for key, value in attributes.items()) + '}'


class MigrationReport:
    """Builds execution summaries and run reports from migration records."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize report generator.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('content_exim.orchestrator.migration_report')

    @staticmethod
    def count(records: Iterable[MigrationRecord]) -> Dict[str, int]:
        """
        Count records the way the summary headline does.

        Failed counts only processed records; records never processed are
        part of the total but neither succeeded nor failed.
        """
        total = processed = succeeded = 0
        for record in records:
            total += 1
            if record.processed:
                processed += 1
                if record.succeeded:
                    succeeded += 1
        return {
            'total': total,
            'processed': processed,
            'succeeded': succeeded,
            'failed': processed - succeeded
        }

    def format_summary(self, records: List[MigrationRecord], duration_ms: int) -> str:
        """
        Format the execution summary of one category.

        Args:
            records: Records in processing order
            duration_ms: Run duration in milliseconds

        Returns:
            Summary text
        """
        counts = self.count(records)
        out = io.StringIO()

        out.write("=" * BANNER_WIDTH + "\n")
        out.write("Execution Summary:\n")
        out.write("-" * BANNER_WIDTH + "\n")
        out.write(
            "Total: %d, Processed: %d, Suceeded: %d, Failed: %d, Duration: %dms\n" % (
                counts['total'], counts['processed'], counts['succeeded'],
                counts['failed'], duration_ms
            )
        )
        out.write("-" * BANNER_WIDTH + "\n")
        out.write("Details (in CSV format):\n")
        out.write("-" * BANNER_WIDTH + "\n")

        writer = csv.writer(out, lineterminator='\n')
        writer.writerow(CSV_HEADER)
        for seq, record in enumerate(records, start=1):
            writer.writerow([
                seq,
                _flag(record.processed),
                _flag(record.succeeded),
                record.content_id or '',
                record.content_path or '',
                record.content_type or '',
                _format_attributes(record.attributes),
                record.error_message or ''
            ])

        out.write("=" * BANNER_WIDTH + "\n")
        return out.getvalue()

    def write_summary(self, records: List[MigrationRecord], duration_ms: int, filepath: str) -> str:
        """
        Write the execution summary of one category to a file and the log.

        Returns:
            The summary text
        """
        summary = self.format_summary(records, duration_ms)
        with open(filepath, 'w', encoding='utf-8') as f:
            f.write(summary)
        self.logger.info(f"\n\n{summary}")
        return summary

    def generate_report(
        self,
        workflow: str,
        result: Result,
        records: Dict[str, List[MigrationRecord]],
        bundle_path: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Generate the run report.

        Args:
            workflow: 'export' or 'import'
            result: Closed run result
            records: Records per category
            bundle_path: Bundle written or read by the run

        Returns:
            Report dictionary
        """
        duration = 0.0
        if result.stopped_at:
            duration = (result.stopped_at - result.started_at).total_seconds()

        categories = {}
        for category in (CATEGORY_DOCUMENTS, CATEGORY_BINARIES):
            category_records = records.get(category, [])
            counts = self.count(category_records)
            counts['failures'] = [
                {'path': r.content_path, 'error': r.error_message}
                for r in category_records if r.processed and not r.succeeded
            ]
            categories[category] = counts

        report = {
            'workflow': workflow,
            'bundle': bundle_path,
            'summary': {
                'total': result.total_count,
                'succeeded': result.succeeded_count,
                'failed': result.failed_count,
                'duration_seconds': duration,
                'duration_formatted': self._format_duration(duration)
            },
            'categories': categories,
            'errors': list(result.errors),
            'timestamp': datetime.now().isoformat()
        }

        self.logger.info(
            f"Report generated: {report['summary']['total']} items, "
            f"{report['summary']['failed']} failed"
        )
        return report

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        if minutes < 60:
            return f"{minutes}m {secs}s"
        hours = minutes // 60
        minutes = minutes % 60
        return f"{hours}h {minutes}m {secs}s"

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Report dictionary

        Returns:
            Formatted console string
        """
        sections = []

        sections.append("=" * 60)
        sections.append(f"{report.get('workflow', 'migration').upper()} REPORT")
        sections.append("=" * 60)
        sections.append("")

        summary = report.get('summary', {})
        sections.append("Summary:")
        sections.append(f"  Items:     {summary.get('total', 0)}")
        sections.append(f"  Succeeded: {summary.get('succeeded', 0)}")
        sections.append(f"  Failed:    {summary.get('failed', 0)}")
        sections.append(f"  Duration:  {summary.get('duration_formatted', '0s')}")
        if report.get('bundle'):
            sections.append(f"  Bundle:    {report['bundle']}")
        sections.append("")

        sections.append("Categories:")
        sections.append("-" * 60)
        for category, counts in report.get('categories', {}).items():
            sections.append(
                f"  {category.capitalize()}: {counts.get('total', 0)} total, "
                f"{counts.get('succeeded', 0)} succeeded, {counts.get('failed', 0)} failed"
            )
            for failure in counts.get('failures', [])[:10]:
                sections.append(f"    - {failure['path']}: {failure['error']}")
            if len(counts.get('failures', [])) > 10:
                sections.append(f"    ... and {len(counts['failures']) - 10} more")
        sections.append("")

        errors = report.get('errors', [])
        if errors:
            sections.append(f"Errors ({len(errors)}):")
            sections.append("-" * 60)
            for message in errors:
                sections.append(f"  - {message}")
            sections.append("")

        sections.append("=" * 60)
        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)
            self.logger.info(f"JSON report exported to {filepath}")
        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")


__all__ = ['MigrationReport', 'CSV_HEADER', 'BANNER_WIDTH']
