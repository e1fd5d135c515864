"""Interactive UI components for picking a category to settle."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from ..models import Category

logger = logging.getLogger(__name__)


class CategoryCompleter(Completer):
    """Fuzzy search completer for categories."""

    def __init__(self, categories: list[Category]):
        """Initialize the completer with available categories."""
        self.categories = categories
        self.name_to_id = {cat.name: cat.id for cat in categories}

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for cat in self.categories:
            if not query:
                yield Completion(text=cat.name, start_position=0, display=cat.name)
            elif fuzzy_match(query, cat.name.lower()):
                yield Completion(
                    text=cat.name,
                    start_position=-len(document.text),
                    display=cat.name,
                )


def fuzzy_match(query: str, text: str) -> bool:
    """
    Fuzzy match: all characters in query must appear in order in text.

    Example:
        query="gro" matches "groceries"
        query="trv" matches "travel"
    """
    query_idx = 0
    for char in text:
        if query_idx < len(query) and char == query[query_idx]:
            query_idx += 1
    return query_idx == len(query)


def select_category_interactive(categories: list[Category]) -> str | None:
    """
    Interactive category selection with fuzzy search.

    Args:
        categories: Categories to choose from

    Returns:
        Selected category ID, or None to cancel
    """
    if not categories:
        return None

    print("\n📂 Choose a category to settle")
    print("   Type to search, press Enter to confirm, Ctrl+C to cancel\n")

    completer = CategoryCompleter(categories)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt("Category: ", complete_while_typing=True)

            if not result:
                return None

            category_id = completer.name_to_id.get(result)
            if category_id:
                logger.info(f"User selected category: {result}")
                return category_id

            print("❌ Unknown category. Pick one from the list (Tab completes).")

    except KeyboardInterrupt:
        print("\n⏭️  Cancelled")
        return None
    except EOFError:
        return None


def confirm_action(message: str) -> bool:
    """Simple yes/no confirmation, defaulting to no."""
    response = input(f"{message} [y/N] ").strip().lower()
    return response in ("y", "yes")
