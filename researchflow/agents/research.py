"""
Built-in Agents for the Research Canvas Workflow.

These are deterministic, offline renditions of the research stages: keyword
extraction instead of a language model, synthesized sources instead of a
search API. They keep the result keys a model-backed agent would publish, so
a real implementation can be registered under the same name as a drop-in.
"""

import re
from typing import Any, Dict, List

from researchflow.engine.agents import AgentContext, register_agent


QUALITY_THRESHOLD = 0.6

_STOPWORDS = {
    "the", "and", "for", "with", "from", "that", "this", "what", "how",
    "why", "are", "was", "were", "into", "about", "does", "its",
}

_SOURCE_TYPES = [
    ("academic", "https://scholar.example.org/papers", 0.92),
    ("news", "https://news.example.com/articles", 0.78),
    ("government", "https://data.example.gov/reports", 0.85),
    ("blog", "https://blog.example.net/posts", 0.55),
    ("wikipedia", "https://en.wikipedia.org/wiki", 0.7),
    ("forum", "https://forum.example.io/threads", 0.4),
]


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def extract_search_terms(query: str, limit: int = 5) -> List[str]:
    """
    Pick keywords from a free-text query.

    Words of three or more characters, lowercased, stopwords removed, in
    order of first appearance.
    """
    terms = []
    for word in re.split(r"[^\w]+", query.lower()):
        if len(word) > 2 and word not in _STOPWORDS and word not in terms:
            terms.append(word)
    return terms[:limit]


@register_agent(
    name="query_analyzer",
    description="Understand and decompose the research query"
)
def query_analyzer(context: AgentContext) -> Dict[str, Any]:
    """
    Break the research query into a topic, search terms and research areas.

    Reads ``query`` (or ``currentTopic``) from the node input.
    """
    query = str(context.input.get("query") or context.input.get("currentTopic") or "").strip()
    if not query:
        raise ValueError("No research query provided")

    search_terms = extract_search_terms(query)
    word_count = len(query.split())
    if word_count > 12:
        complexity = "advanced"
    elif word_count > 5:
        complexity = "intermediate"
    else:
        complexity = "basic"

    return {
        "analyzed_query": query,
        "main_topic": query,
        "search_terms": search_terms,
        "research_areas": [query] + [t for t in search_terms[:2] if t != query.lower()],
        "analysis": {
            "complexity": complexity,
            "source_types": [kind for kind, _, _ in _SOURCE_TYPES[:3]],
        },
    }


@register_agent(
    name="web_searcher",
    description="Search for relevant sources and information"
)
def web_searcher(context: AgentContext) -> Dict[str, Any]:
    """Produce one candidate source per source type for the main topic."""
    search_terms = context.global_state.get("search_terms") or []
    topic = context.global_state.get("main_topic") or " ".join(search_terms)

    sources = []
    for kind, base_url, score in _SOURCE_TYPES:
        sources.append({
            "title": f"{topic.title()} ({kind})",
            "url": f"{base_url}/{_slug(topic)}",
            "type": kind,
            "relevance_score": score,
            "description": f"{kind.capitalize()} coverage of {topic}",
        })

    return {
        "sources": sources,
        "search_summary": f"Found {len(sources)} relevant sources for research",
        "search_terms_used": search_terms,
    }


@register_agent(
    name="source_validator",
    description="Validate and rank found sources"
)
def source_validator(context: AgentContext) -> Dict[str, Any]:
    """Keep sources scoring above the quality threshold, best first."""
    sources = context.global_state.get("sources") or []
    validated = sorted(
        (s for s in sources if (s.get("relevance_score") or 0) > QUALITY_THRESHOLD),
        key=lambda s: s["relevance_score"],
        reverse=True,
    )
    return {
        "validated_sources": validated,
        "validation_summary": f"Validated {len(validated)} out of {len(sources)} sources",
        "quality_threshold": QUALITY_THRESHOLD,
    }


@register_agent(
    name="content_analyzer",
    description="Extract insights and key information"
)
def content_analyzer(context: AgentContext) -> Dict[str, Any]:
    validated = context.global_state.get("validated_sources") or []
    topic = context.global_state.get("main_topic") or ""
    terms = context.global_state.get("search_terms") or []

    insights = [
        f"{source['type'].capitalize()} sources describe {topic}: {source['description']}"
        for source in validated
    ]
    if not insights:
        insights = [f"Key insights about {topic} from {len(validated)} sources"]

    return {
        "insights": insights,
        "themes": [topic] + terms[:3],
        "synthesis": (
            f"Analysis of {topic} based on {len(validated)} validated sources"
        ),
    }


@register_agent(
    name="article_writer",
    description="Generate comprehensive article"
)
def article_writer(context: AgentContext) -> Dict[str, Any]:
    """Assemble a sectioned article from the analysis results."""
    topic = context.global_state.get("main_topic") or ""
    insights = context.global_state.get("insights") or []
    themes = context.global_state.get("themes") or []
    synthesis = context.global_state.get("synthesis") or ""

    sections = [f"# {topic.title()}", f"## Introduction\n\n{synthesis}."]
    if insights:
        body = "\n".join(f"- {insight}" for insight in insights)
        sections.append(f"## Findings\n\n{body}")
    if themes:
        sections.append("## Themes\n\n" + ", ".join(themes))
    sections.append(
        f"## Conclusion\n\nThe available evidence on {topic} was drawn from "
        f"{len(insights)} insights across {len(themes)} themes."
    )
    article = "\n\n".join(sections)

    return {
        "article": article,
        "article_structure": {
            "word_count": len(article.split()),
            "sections": [s.splitlines()[0].lstrip("# ") for s in sections[1:]],
            "main_topic": topic,
        },
        "writing_notes": (
            f"Article generated based on {len(insights)} insights and {len(themes)} themes"
        ),
    }


@register_agent(
    name="quality_reviewer",
    description="Review and suggest improvements"
)
def quality_reviewer(context: AgentContext) -> Dict[str, Any]:
    """Score the article on length, structure and evidence."""
    article = context.global_state.get("article") or ""
    structure = context.global_state.get("article_structure") or {}
    sources = context.global_state.get("validated_sources") or []

    word_count = structure.get("word_count", len(article.split()))
    section_count = len(structure.get("sections", []))

    score = 5.0
    score += min(2.0, word_count / 100)
    score += min(1.5, section_count * 0.5)
    score += min(1.5, len(sources) * 0.5)
    score = round(min(10.0, score), 1)

    recommendations = []
    if word_count < 200:
        recommendations.append("Expand the article body")
    if len(sources) < 3:
        recommendations.append("Add more validated sources")
    if not recommendations:
        recommendations = ["Review for clarity", "Check citations"]

    return {
        "overall_score": score,
        "review_summary": f"Article scored {score}/10 overall",
        "recommendations": recommendations,
    }
