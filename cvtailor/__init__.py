# CV Tailor - AI-Powered CV and Cover Letter Tailoring
# Version 0.1.0

"""
CV Tailor rewrites a candidate's CV and drafts a cover letter for one job.

Layers:
1. Job Scraper - Headless browser scrape with a hosted-API fallback
2. CV Tailor - Prompt construction and section parsing around Claude
3. Documents - PDF text extraction and PDF / text rendering
4. Orchestrator - Sessions, chunking and the tailoring pipeline
"""

__version__ = "0.1.0"
