# utils/report_generator.py

import html
import logging
from typing import Dict, List

from core.batch_processor import BatchResult, PairOutcome
from core.models import DuplicateDecision

logger = logging.getLogger(__name__)


class DuplicateReportGenerator:
    """
    Generate HTML reports for batch comparisons and upload decisions
    """

    def generate_batch_report(self, result: BatchResult,
                              output_path: str = "duplicate_report.html"):
        """HTML report with one row per compared pair"""
        stats_html = f"""
        <div class="statistics">
            <h2>Batch Comparison Summary</h2>
            <p><strong>Images:</strong> {result.total_images}</p>
            <p><strong>Pairs compared:</strong> {len(result.comparisons)}</p>
            <p><strong>Duplicate pairs:</strong> {result.duplicates}</p>
            <p><strong>Unique pairs:</strong> {result.unique}</p>
        </div>
        """
        rows = "".join(self._pair_row(p) for p in result.comparisons)
        body = f"""
        <table>
            <tr><th>Image 1</th><th>Image 2</th><th>Distance</th>
                <th>Confidence</th><th>Duplicate</th><th>AI</th></tr>
            {rows}
        </table>
        """
        self._write(output_path, stats_html, body)

    def generate_decision_report(self, decision: DuplicateDecision, upload_name: str,
                                 output_path: str = "duplicate_report.html"):
        """HTML report for one upload checked against a pool"""
        methods = ", ".join(sorted(m.value for m in decision.methods_used)) or "none"
        stats_html = f"""
        <div class="statistics">
            <h2>Duplicate Check: {html.escape(upload_name)}</h2>
            <p><strong>Duplicate:</strong> {'yes' if decision.is_duplicate else 'no'}</p>
            <p><strong>Confidence:</strong> {decision.confidence:.3f}</p>
            <p><strong>Methods:</strong> {methods}</p>
            <p><strong>Candidates checked:</strong> {decision.candidates_checked}</p>
        </div>
        """
        rows = "".join(
            f"<tr><td>{html.escape(m.asset_id)}</td><td>{m.method.value}</td>"
            f"<td>{m.confidence:.3f}</td><td>{html.escape(m.reason)}</td></tr>"
            for m in decision.matches
        )
        body = f"""
        <table>
            <tr><th>Asset</th><th>Method</th><th>Confidence</th><th>Reason</th></tr>
            {rows}
        </table>
        """
        self._write(output_path, stats_html, body)

    def _pair_row(self, pair: PairOutcome) -> str:
        names = f"<td>{html.escape(pair.name_a)}</td><td>{html.escape(pair.name_b)}</td>"
        if pair.result is None:
            return f"<tr class='error'>{names}<td colspan='4'>{html.escape(pair.error or '')}</td></tr>"

        result = pair.result
        distance = result.local.distance if result.local else ("0 (exact)" if result.exact else "n/a")
        css = "duplicate" if result.is_duplicate else ""
        return (
            f"<tr class='{css}'>{names}<td>{distance}</td>"
            f"<td>{result.confidence:.3f}</td>"
            f"<td>{'yes' if result.is_duplicate else 'no'}</td>"
            f"<td>{html.escape(result.ai_message)}</td></tr>"
        )

    def _write(self, output_path: str, stats_html: str, body_html: str):
        final_html = self._create_html_template()
        final_html = final_html.replace("{{STATS}}", stats_html)
        final_html = final_html.replace("{{BODY}}", body_html)

        with open(output_path, 'w') as f:
            f.write(final_html)

        logger.info("Report generated: %s", output_path)

    def _create_html_template(self) -> str:
        """HTML template for report"""
        return """
        <!DOCTYPE html>
        <html>
        <head>
            <title>Duplicate Detection Report</title>
            <style>
                body { font-family: Arial, sans-serif; margin: 20px; }
                .statistics { background: #f0f0f0; padding: 20px; border-radius: 5px; }
                table { border-collapse: collapse; margin-top: 20px; width: 100%; }
                th, td { border: 1px solid #ddd; padding: 6px 10px; text-align: left; }
                tr.duplicate { background: #ffebee; }
                tr.error { color: #666; }
            </style>
        </head>
        <body>
            <h1>Image Duplicate Detection Report</h1>
            {{STATS}}
            {{BODY}}
        </body>
        </html>
        """
