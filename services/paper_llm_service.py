# services/paper_llm_service.py
import logging
import os
from typing import Optional

from services.llm_schemas import ExtractedPaper, PaperReview, normalize_extraction, normalize_review
from services.llm_service import generate_json_response, generate_response

logger = logging.getLogger(__name__)

EXTRACT_MODEL = os.getenv("EXTRACT_MODEL") or None

EXPLAIN_LEVELS = ("eli5", "student", "expert")

# ------------------------------------------------------------
# PROMPTS
# ------------------------------------------------------------

SUMMARY_SYSTEM_PROMPT = "\n".join([
    "You are a precise summarizer. Summarize ONLY from the provided title and abstract.",
    "Output format:",
    "Takeaway: <single sentence>",
    "- Contributions: <short bullet>",
    "- Method: <short bullet>",
    "- Tasks/Datasets: <short bullet>",
    "- Results/Claims: <short bullet>",
    "Rules:",
    '- If a detail is missing, output "Not stated".',
    "- Do NOT infer or speculate beyond the text.",
    "- Do NOT assert SOTA unless explicitly stated.",
])

EXTRACT_SYSTEM_PROMPT = "\n".join([
    "Extract ONLY from the provided title and abstract. Do not speculate.",
    "Return a JSON object with exactly these keys:",
    "- method: short name/phrase; null if not stated.",
    "- tasks: array of task names (e.g., 'Reasoning', 'Image classification').",
    "- datasets: array of datasets (e.g., 'MMLU', 'ImageNet-1k').",
    "- benchmarks: array of benchmarks commonly used for SOTA (e.g., 'MMLU', 'GSM8K').",
    "- claimed_sota: array of {benchmark, metric, value, split} ONLY if the abstract explicitly claims state-of-the-art; otherwise empty.",
    "- params/tokens: numeric (billions) if explicitly stated; otherwise null.",
    "- compute: short free-text if stated; else null.",
    "- code_urls: include only URLs explicitly present in the abstract; otherwise empty.",
    "If a detail is absent, return an empty array or null; never fabricate.",
])

REVIEW_SYSTEM_PROMPT = "\n".join([
    "Act as a careful reviewer. Base your review ONLY on the provided title and abstract (and README if present).",
    "Return a JSON object with keys: strengths, weaknesses, risks, next_experiments (arrays of strings),",
    "reproducibility_notes (string or null), novelty_score, clarity_score (integers 0..3 or null), caveats (string or null).",
    "Rules:",
    "- If a detail is missing, use null or an empty array.",
    "- Do NOT speculate or add external information.",
    "- Do NOT assert SOTA unless the abstract explicitly claims it.",
    "Keep bullets concise and concrete.",
])

_EXPLAIN_COMMON = [
    "Explain the paper using ONLY the provided title and abstract (and README if present).",
    'If a detail is missing, write "Not stated".',
    "Do not speculate or add external information. Do not assert SOTA unless explicitly stated.",
    "Structure the output into short sections separated by blank lines.",
]

_EXPLAIN_STYLES = {
    "eli5": [
        "Audience: a curious non-expert (ELI5).",
        "Style: friendly, concrete, minimal jargon; use simple analogies when helpful.",
        "Format:",
        "What it is: <2-3 sentences>",
        "How it works: <2-4 short sentences>",
        "Why it matters / Examples: <1-3 sentences>",
        "Limits: <1-2 sentences>",
    ],
    "student": [
        "Audience: undergrad/grad student.",
        "Style: concise, structured, clear terminology.",
        "Format (use brief subsections):",
        "Overview: <2-3 sentences>",
        "Method: <key idea + main steps/components>",
        "Evidence: <datasets/benchmarks/claims if stated>",
        "Limitations: <risks, assumptions, or missing pieces>",
    ],
    "expert": [
        "Audience: expert reader.",
        "Style: terse and technical. Prefer specifics over analogies.",
        "Format (bulleted where natural):",
        "- Problem/Setup",
        "- Approach/Architecture (modules, objectives, training/inference notes)",
        "- Evaluation (datasets/benchmarks/claims), only if stated",
        "- Limitations/Caveats",
    ],
}


def build_explain_prompt(level: str) -> str:
    if level not in _EXPLAIN_STYLES:
        raise ValueError(f"Unknown explain level: {level}")
    return "\n".join(_EXPLAIN_COMMON + _EXPLAIN_STYLES[level])


def _paper_prompt(title: str, abstract: str, readme: Optional[str] = None) -> str:
    parts = [f"Title: {title}", "", "Abstract:", abstract]
    if readme:
        parts += ["", f"README (optional):\n{readme[:4000]}"]
    return "\n".join(parts)


# ------------------------------------------------------------
# OPERATIONS
# ------------------------------------------------------------

def summarize_paper(title: str, abstract: str) -> str:
    return generate_response(
        _paper_prompt(title, abstract),
        system_prompt=SUMMARY_SYSTEM_PROMPT,
        temperature=0.1,
        max_tokens=512,
    )


def explain_paper(title: str, abstract: str, level: str, readme: Optional[str] = None) -> str:
    return generate_response(
        _paper_prompt(title, abstract, readme),
        system_prompt=build_explain_prompt(level),
        temperature=0.2,
        max_tokens=1200,
    )


def extract_paper_fields(title: str, abstract: str) -> ExtractedPaper:
    """LLM extraction, normalized so that absent or malformed fields come back empty."""
    raw = generate_json_response(
        _paper_prompt(title, abstract),
        model=EXTRACT_MODEL,
        system_prompt=EXTRACT_SYSTEM_PROMPT,
        temperature=0.1,
        max_tokens=900,
    )
    return normalize_extraction(raw)


def review_paper(title: str, abstract: str, readme: Optional[str] = None) -> PaperReview:
    raw = generate_json_response(
        _paper_prompt(title, abstract, readme),
        system_prompt=REVIEW_SYSTEM_PROMPT,
        temperature=0.2,
        max_tokens=1200,
    )
    return normalize_review(raw)
