"""
Document Renderer

Turns generated CV and cover letter text into downloadable files:
1. Parsers - Heuristic extraction of structured data from LLM text
2. PDF - fpdf layouts (centered header, underlined sections, bullets)
3. Text - Plain-text layout matching the PDF structure
"""

import re
import logging
import textwrap
from datetime import datetime
from typing import Dict, List, Optional

from fpdf import FPDF

from cvtailor.core.schemas import (
    CVData, CVEducation, CVExperience, CoverLetterData
)

logger = logging.getLogger(__name__)


# ============================================================================
# Parsing
# ============================================================================

CV_HEADERS = ["SUMMARY", "EXPERIENCE", "EDUCATION", "SKILLS", "CERTIFICATIONS", "PROJECTS"]

_HEADER_PATTERN = re.compile(
    r"^[ \t#*]*(?:PROFESSIONAL\s+|WORK\s+|TECHNICAL\s+)?(" + "|".join(CV_HEADERS) + r")\b[ \t*]*:?",
    re.IGNORECASE | re.MULTILINE,
)
_EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w.-]+\.\w+")
_PHONE_PATTERN = re.compile(r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
_BULLET_PATTERN = re.compile(r"^\s*(?:[-*•]|\d+\.)\s+")


def split_cv_blocks(text: str) -> Dict[str, str]:
    """Map each CV header (SUMMARY, EXPERIENCE, ...) to the text under it."""
    matches = list(_HEADER_PATTERN.finditer(text))
    blocks = {}
    for i, match in enumerate(matches):
        name = match.group(1).upper()
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        if name not in blocks:
            blocks[name] = text[match.end():end].strip()
    return blocks


def _lines(block: str) -> List[str]:
    return [_BULLET_PATTERN.sub("", line).strip() for line in block.split("\n") if line.strip()]


def parse_cv_text(text: str) -> CVData:
    """
    Parse AI-generated CV text into structured data.

    Fields that cannot be found keep their placeholder defaults.
    """
    data = CVData()
    lines = [line.strip() for line in text.split("\n") if line.strip()]

    # Name: explicit "Name:" line, else a plain first line
    name_line = next((l for l in lines if re.match(r"^\W*name\s*:", l, re.IGNORECASE)), None)
    if name_line:
        data.name = re.sub(r"^\W*name\s*:", "", name_line, flags=re.IGNORECASE).strip()
    elif lines and ":" not in lines[0] and "@" not in lines[0]:
        data.name = lines[0].lstrip("#").replace("**", "").strip()

    email = _EMAIL_PATTERN.search(text)
    if email:
        data.email = email.group(0)

    phone = _PHONE_PATTERN.search(text)
    if phone:
        data.phone = phone.group(0)

    location_line = next((l for l in lines if re.match(r"^\W*location\s*:", l, re.IGNORECASE)), None)
    if location_line:
        data.location = location_line.split(":", 1)[1].strip()

    blocks = split_cv_blocks(text)

    if blocks.get("SUMMARY"):
        data.summary = " ".join(_lines(blocks["SUMMARY"]))

    if blocks.get("EXPERIENCE"):
        bullets = _lines(blocks["EXPERIENCE"])[:5]
        if bullets:
            data.experience = [CVExperience(
                title="Professional Experience",
                company="",
                date="",
                description=bullets,
            )]

    if blocks.get("EDUCATION"):
        data.education = [
            CVEducation(degree=line, school="", date="")
            for line in _lines(blocks["EDUCATION"])[:3]
        ]

    if blocks.get("SKILLS"):
        skills = [s.strip() for s in re.split(r"[,\n]", blocks["SKILLS"])]
        data.skills = [
            _BULLET_PATTERN.sub("", s) for s in skills
            if 1 < len(s) < 30
        ][:15]

    return data


def parse_cover_letter_text(
    text: str,
    sender_name: str,
    sender_email: str,
    company_name: Optional[str],
    job_title: str
) -> CoverLetterData:
    """Parse AI-generated cover letter into structured data (body paragraphs only)."""
    paragraphs = [
        p.strip() for p in re.split(r"\n\s*\n", text)
        if p.strip()
        and "dear" not in p.lower()
        and "sincerely" not in p.lower()
    ][:4]

    if not paragraphs:
        paragraphs = ["Thank you for considering my application."]

    today = datetime.now()
    return CoverLetterData(
        sender_name=sender_name,
        sender_email=sender_email,
        date=f"{today:%B} {today.day}, {today.year}",
        company_name=company_name or "Company",
        job_title=job_title,
        paragraphs=paragraphs,
    )


# ============================================================================
# PDF Generation
# ============================================================================

_UNICODE_REPLACEMENTS = {
    "•": "-",
    "–": "-",
    "—": "-",
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
    "…": "...",
    "→": "->",
}


def _latin1(text: str) -> str:
    """Core PDF fonts only cover latin-1."""
    for old, new in _UNICODE_REPLACEMENTS.items():
        text = text.replace(old, new)
    return text.encode("latin-1", "replace").decode("latin-1")


class DocumentPdf(FPDF):
    """A4 page with the shared CV / cover letter building blocks."""

    def __init__(self):
        super().__init__()
        self.set_margins(left=20, top=15, right=20)
        self.set_auto_page_break(auto=True, margin=15)
        self.add_page()

    def header_name(self, name: str):
        self.set_font("Helvetica", "B", 16)
        self.cell(0, 10, _latin1(name), ln=True, align="C")

    def header_contact(self, *parts: str):
        self.set_font("Helvetica", "", 9)
        contact = "    ".join(p for p in parts if p)
        self.cell(0, 5, _latin1(contact), ln=True, align="C")
        self.ln(3)

    def section_header(self, title: str):
        """Bold title with a rule under it."""
        self.ln(4)
        self.set_font("Helvetica", "B", 10)
        self.cell(0, 5, _latin1(title.upper()), ln=True)
        y = self.get_y()
        self.line(20, y, 190, y)
        self.ln(2)

    def paragraph(self, text: str, size: float = 9):
        self.set_font("Helvetica", "", size)
        self.set_x(20)
        self.multi_cell(170, 4.5, _latin1(text))

    def bullet_point(self, text: str):
        self.set_font("Helvetica", "", 8.5)
        self.set_x(25)
        self.multi_cell(160, 4, _latin1(f"-  {text}"))

    def to_bytes(self) -> bytes:
        return bytes(self.output())


def render_cv_pdf(data: CVData) -> bytes:
    """Render a structured CV as PDF bytes."""
    pdf = DocumentPdf()
    pdf.header_name(data.name)
    pdf.header_contact(data.email, f"Tel: {data.phone}" if data.phone else "", data.location)

    if data.summary:
        pdf.section_header("Professional Summary")
        pdf.paragraph(data.summary)

    if data.experience:
        pdf.section_header("Professional Experience")
        for exp in data.experience:
            heading = " - ".join(p for p in (exp.title, exp.company) if p)
            if exp.date:
                heading = f"{heading} | {exp.date}"
            pdf.set_font("Helvetica", "B", 9)
            pdf.set_x(20)
            pdf.multi_cell(170, 4.5, _latin1(heading))
            pdf.ln(1)
            for bullet in exp.description:
                pdf.bullet_point(bullet)

    if data.education:
        pdf.section_header("Education")
        for edu in data.education:
            line = ", ".join(p for p in (edu.degree, edu.school, edu.date) if p)
            pdf.bullet_point(line)

    if data.skills:
        pdf.section_header("Skills")
        pdf.paragraph(", ".join(data.skills))

    logger.info(f"Rendered CV PDF for {data.name}")
    return pdf.to_bytes()


def render_cover_letter_pdf(data: CoverLetterData) -> bytes:
    """Render a structured cover letter as PDF bytes."""
    pdf = DocumentPdf()
    pdf.header_name(data.sender_name)
    pdf.header_contact(data.sender_email, data.sender_phone)

    pdf.paragraph(data.date)
    pdf.ln(4)
    pdf.paragraph(f"{data.recipient_name}\n{data.recipient_title}\n{data.company_name}")
    pdf.ln(4)
    pdf.set_font("Helvetica", "B", 9)
    pdf.cell(0, 5, _latin1(f"Re: {data.job_title}"), ln=True)
    pdf.ln(2)

    pdf.paragraph(f"Dear {data.recipient_name},")
    pdf.ln(2)
    for para in data.paragraphs:
        pdf.paragraph(para)
        pdf.ln(3)

    pdf.paragraph(f"Sincerely,\n{data.sender_name}")

    logger.info(f"Rendered cover letter PDF for {data.company_name}")
    return pdf.to_bytes()


# ============================================================================
# Text Formatting
# ============================================================================

LINE_WIDTH = 80


def format_cv_as_text(markdown_text: str) -> str:
    """
    Convert a markdown CV to plain text:
    - Name centered at top
    - Contact info centered
    - Section headers underlined
    - Bullets indented and wrapped
    """
    output = []
    name_found = False
    contact_found = False

    for line in markdown_text.split("\n"):
        line = line.strip()
        if not line:
            output.append("")
            continue

        clean_line = line.replace("**", "").replace("*", "").lstrip("#").strip()

        if not name_found and not line.startswith("-") and "@" not in line:
            output.extend(["", clean_line.center(LINE_WIDTH), ""])
            name_found = True
            continue

        if "@" in line and not contact_found:
            contact_found = True
            output.extend([clean_line.replace("|", "  |  ").center(LINE_WIDTH), ""])
            continue

        if _HEADER_PATTERN.match(line) and len(line) < 50:
            title = clean_line.rstrip(":").upper()
            output.extend(["", title, "_" * len(title), ""])
            continue

        if _BULLET_PATTERN.match(line):
            bullet_text = _BULLET_PATTERN.sub("", line).replace("**", "").replace("*", "").strip()
            output.extend(textwrap.wrap(
                bullet_text, width=LINE_WIDTH - 2,
                initial_indent="    •  ", subsequent_indent="       "
            ))
            continue

        output.append(clean_line)

    return "\n".join(output).strip("\n") + "\n"


def format_cover_letter_as_text(data: CoverLetterData) -> str:
    """Plain-text cover letter with wrapped paragraphs."""
    parts = [
        data.sender_name,
        data.sender_email,
        "",
        data.date,
        "",
        data.recipient_name,
        data.recipient_title,
        data.company_name,
        "",
        f"Re: {data.job_title}",
        "",
        f"Dear {data.recipient_name},",
        "",
    ]
    for para in data.paragraphs:
        parts.append(textwrap.fill(para, width=LINE_WIDTH))
        parts.append("")
    parts.extend(["Sincerely,", data.sender_name])
    return "\n".join(parts) + "\n"
