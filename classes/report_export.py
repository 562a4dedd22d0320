# classes/report_export.py
"""
Human readable renditions of a normalized analysis result: a Markdown report and a Word
(.docx) report. Both expect the output of ResponseNormalizer; missing optional sections
are skipped, missing scalars print as "N/A".
"""

from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional

from docx import Document

REPORT_TITLE = "Spotter Model Optimization Report"

SEVERITY_SECTIONS = [
    ("critical", "Critical (Do First)"),
    ("important", "Important (Do Soon)"),
    ("niceToHave", "Nice to Have (When Time Permits)"),
]

STATISTICS_LABELS = [
    ("missingDescriptions", "Missing Descriptions"),
    ("abbreviatedNames", "Abbreviated Names"),
    ("needingSynonyms", "Needing Synonyms"),
    ("descriptionsOver400Chars", "Descriptions Over 400 Chars"),
    ("synonymOverlapIssues", "Synonym Overlap Issues"),
    ("impactLevel", "Estimated Impact"),
]

COMPARISON_HEADERS = [
    "Current Name",
    "Recommended Name",
    "Recommended Description",
    "Recommended Synonyms",
    "Priority",
    "Chars",
]


def _text(value: Any, default: str = "N/A") -> str:
    if value is None or value == "":
        return default
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) or default
    return str(value)


def _md_cell(value: Any) -> str:
    return _text(value, "").replace("|", "\\|").replace("\n", " ")


def render_table_markdown(headers: List[str], rows: List[List[Any]]) -> str:
    if not headers and not rows:
        return ""
    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(["---"] * len(headers)) + " |",
    ]
    for row in rows:
        cells = [_md_cell(c) for c in row] + [""] * (len(headers) - len(row))
        lines.append("| " + " | ".join(cells[:len(headers)]) + " |")
    return "\n".join(lines)


def _comparison_rows(results: Dict[str, Any]) -> List[List[Any]]:
    rows = []
    for r in results.get("comparisonTable") or []:
        rows.append([
            r.get("currentName"),
            r.get("recommendedName"),
            r.get("recommendedDescription"),
            r.get("recommendedSynonyms"),
            r.get("priority"),
            r.get("descriptionCharCount"),
        ])
    return rows


def _recommendation_items(results: Dict[str, Any], bucket: str) -> List[Dict[str, Any]]:
    recs = results.get("columnRecommendations") or {}
    return [i for i in recs.get(bucket) or [] if isinstance(i, dict)]


def render_markdown_report(results: Dict[str, Any], generated_at: Optional[datetime] = None) -> str:
    generated_at = generated_at or datetime.now()
    out: List[str] = [
        f"# {REPORT_TITLE}",
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "## Overview",
        f"- Industry: {_text(results.get('industry'))}",
        f"- Business Function: {_text(results.get('businessFunction'))}",
        f"- Model Purpose: {_text(results.get('modelPurpose'))}",
        f"- Total Columns: {_text(results.get('totalColumns'), '0')}",
        f"- Columns Requiring Attention: {_text(results.get('columnsNeedingAttention'), '0')}",
        "",
    ]

    stats = results.get("statistics")
    if isinstance(stats, dict):
        out.append("## Summary Statistics")
        for key, label in STATISTICS_LABELS:
            out.append(f"- {label}: {_text(stats.get(key))}")
        out.append("")

    model_description = results.get("modelDescription")
    if isinstance(model_description, dict):
        out += [
            "## Model Description",
            f"**Current:** {_text(model_description.get('current'), 'None')}",
            "",
            f"**Recommended:** {_text(model_description.get('recommended'))}",
            "",
        ]

    if results.get("modelInstructions"):
        out += ["## Model Instructions", _text(results.get("modelInstructions")), ""]

    out.append("## Column Recommendations")
    for bucket, title in SEVERITY_SECTIONS:
        items = _recommendation_items(results, bucket)
        if not items:
            continue
        out += ["", f"### {title}"]
        for item in items:
            rec = item.get("recommendations") or {}
            out += [
                "",
                f"#### {_text(item.get('columnName'))}",
                f"- Issue: {_text(item.get('issue'))}",
                f"- Recommended Name: {_text(rec.get('name'))}",
                f"- Description: {_text(rec.get('description'))}",
                f"- Synonyms: {_text(rec.get('synonyms'))}",
                f"- Rationale: {_text(rec.get('rationale'))}",
            ]
    out.append("")

    quick_wins = results.get("quickWins")
    if isinstance(quick_wins, list) and quick_wins:
        out.append("## Quick Wins")
        out += [f"- {_text(w)}" for w in quick_wins]
        out.append("")

    out += ["## Comparison Table", render_table_markdown(COMPARISON_HEADERS, _comparison_rows(results)), ""]

    if results.get("industryContext"):
        out += ["## Industry Context", _text(results.get("industryContext")), ""]

    return "\n".join(out)


def _add_label_value(doc, label: str, value: Any) -> None:
    p = doc.add_paragraph()
    p.add_run(f"{label}: ").bold = True
    p.add_run(_text(value))


def build_docx_report(results: Dict[str, Any], generated_at: Optional[datetime] = None) -> bytes:
    generated_at = generated_at or datetime.now()
    doc = Document()
    doc.add_heading(REPORT_TITLE, level=0)
    doc.add_paragraph(f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}")

    doc.add_heading("Model Overview", level=1)
    _add_label_value(doc, "Industry", results.get("industry"))
    _add_label_value(doc, "Business Function", results.get("businessFunction"))
    _add_label_value(doc, "Model Purpose", results.get("modelPurpose"))
    _add_label_value(doc, "Total Columns", _text(results.get("totalColumns"), "0"))
    _add_label_value(doc, "Columns Requiring Attention", _text(results.get("columnsNeedingAttention"), "0"))

    stats = results.get("statistics")
    if isinstance(stats, dict):
        doc.add_heading("Summary Statistics", level=2)
        for key, label in STATISTICS_LABELS:
            _add_label_value(doc, label, stats.get(key))

    if results.get("industryContext"):
        doc.add_heading("Industry Context", level=1)
        doc.add_paragraph(_text(results.get("industryContext")))

    model_description = results.get("modelDescription")
    if isinstance(model_description, dict):
        doc.add_heading("Model Description", level=1)
        _add_label_value(doc, "Current", _text(model_description.get("current"), "None"))
        _add_label_value(doc, "Recommended", model_description.get("recommended"))

    doc.add_heading("Column Recommendations", level=1)
    for bucket, title in SEVERITY_SECTIONS:
        items = _recommendation_items(results, bucket)
        if not items:
            continue
        doc.add_heading(title, level=2)
        for item in items:
            rec = item.get("recommendations") or {}
            doc.add_heading(_text(item.get("columnName")), level=3)
            _add_label_value(doc, "Issue", item.get("issue"))
            _add_label_value(doc, "Recommended Name", rec.get("name"))
            _add_label_value(doc, "Description", rec.get("description"))
            _add_label_value(doc, "Synonyms", rec.get("synonyms"))
            _add_label_value(doc, "Rationale", rec.get("rationale"))

    rows = _comparison_rows(results)
    if rows:
        doc.add_heading("Comparison Table", level=1)
        table = doc.add_table(rows=1, cols=len(COMPARISON_HEADERS))
        table.style = "Table Grid"
        for cell, header in zip(table.rows[0].cells, COMPARISON_HEADERS):
            cell.text = header
        for row in rows:
            cells = table.add_row().cells
            for cell, value in zip(cells, row):
                cell.text = _text(value, "")

    buf = BytesIO()
    doc.save(buf)
    return buf.getvalue()
