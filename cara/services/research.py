from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..models.ai import NewsItem
from ..state import State
from .normalizer import extract_news_items, extract_search_result

SEARCH_SYSTEM_PROMPT = (
    "You are CARA, a Legal Assistant providing factual legal information. You provide direct, "
    "concise information about laws and legal topics in a structured format suitable for search "
    "results. Always cite legal standards or sources when available. If information is not "
    "reliable or available, clearly state this rather than making assumptions."
)
NEWS_SYSTEM_PROMPT = (
    "You are CARA, a Legal Assistant providing factual legal information. You provide recent, "
    "factual news about laws and legal developments. Always include approximate dates when "
    "possible. If recent information is not available, clearly state this rather than making "
    "up details."
)

SEARCH_OPTIONS = {"temperature": 0.3, "max_tokens": 1200}
NEWS_OPTIONS = {"temperature": 0.3, "max_tokens": 1000}


def _scoped(category: Optional[str]) -> bool:
    return bool(category) and category != "All"


def build_search_prompt(query: str, category: Optional[str] = None) -> str:
    prompt = f'Provide factual information about the following legal topic or law: "{query}"'
    if _scoped(category):
        prompt += f" in the context of {category}."
    prompt += (
        " Include only verified, factual information, focusing on:"
        "\n1. Brief, factual definition and purpose of the law"
        "\n2. Key provisions, rights, or requirements"
        "\n3. Relevant legal references or citations"
        "\n4. Any important exceptions or limitations"
        "\nFormat as a structured search result with title, summary, and content sections. "
        "If you cannot find reliable information, state this clearly."
    )
    return prompt


def build_news_prompt(category: Optional[str] = None) -> str:
    prompt = "Provide the latest news and updates about laws and legal developments"
    if _scoped(category):
        prompt += f" related to {category}"
    prompt += (
        ". Include information about recent legislative changes, court decisions, or legal trends. "
        "For each news item, provide:"
        "\n1. A descriptive title"
        "\n2. Approximate date of the development"
        "\n3. A brief summary (2-3 sentences)"
        "\nLimit to 3-5 most relevant and recent items. "
        "If you cannot find reliable recent information, state this clearly."
    )
    return prompt


async def search_laws(state: State, query: str, category: Optional[str] = None) -> List[Dict[str, Any]]:
    messages = [
        {"role": "system", "content": SEARCH_SYSTEM_PROMPT},
        {"role": "user", "content": build_search_prompt(query, category)},
    ]
    raw = await state.completion.complete(messages, SEARCH_OPTIONS)
    return [extract_search_result(raw, query, category)]


async def laws_news(state: State, category: Optional[str] = None) -> List[NewsItem]:
    messages = [
        {"role": "system", "content": NEWS_SYSTEM_PROMPT},
        {"role": "user", "content": build_news_prompt(category)},
    ]
    raw = await state.completion.complete(messages, NEWS_OPTIONS)
    return extract_news_items(raw, category)
