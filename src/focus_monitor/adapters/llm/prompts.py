"""Prompt construction for content classification."""

from focus_monitor.config import DEFAULT_USER_PROMPT

TRUNCATION_NOTE = " ...[truncated]"


def build_classification_prompt(
    title: str,
    body: str,
    category: str,
    template: str = DEFAULT_USER_PROMPT,
    max_chars: int = 4000,
) -> str:
    """Build the user prompt with a bounded content excerpt.

    Args:
        title: Page title.
        body: Extracted page text.
        category: Site category hint.
        template: Format string with ``{title}``, ``{category}``, ``{content}``
            and ``{truncation_note}`` placeholders.
        max_chars: Maximum number of body characters embedded in the prompt.

    Returns:
        Formatted prompt string.
    """
    excerpt = body[:max_chars]
    note = TRUNCATION_NOTE if len(body) > max_chars else ""
    return template.format(
        title=title,
        category=category,
        content=excerpt,
        truncation_note=note,
    ).strip()
