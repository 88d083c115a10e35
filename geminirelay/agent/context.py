"""Context builder for assembling generation requests."""

from __future__ import annotations

from geminirelay.session.history import HISTORY_WINDOW, HistoryStore, Turn

PERSONA_NAME_PLACEHOLDER = "{{name}}"
DEFAULT_AUTHOR = "User"
DEFAULT_IMAGE_PROMPT = "Please describe what is in this image."
IMAGE_ANALYSIS_INSTRUCTION = (
    "You are an AI assistant that can analyze images. "
    "Describe the contents of the image sent by the user in detail."
)


def with_author(text: str, author_name: str | None) -> str:
    """Prefix ``text`` with the speaker so the model can tell group members apart."""
    return f"{author_name}: {text}" if author_name else text


class ContextBuilder:
    """
    Builds the turn list for one generation call.

    The window is read fresh from the history store on every call; nothing
    is cached between requests.
    """

    def __init__(self, history: HistoryStore, persona: str = "", window: int = HISTORY_WINDOW):
        self.history = history
        self.persona = persona or ""
        self.window = window

    def _persona_for(self, author_name: str | None) -> str:
        return self.persona.replace(PERSONA_NAME_PLACEHOLDER, author_name or DEFAULT_AUTHOR)

    def build_prompt(self, prompt: str, author_name: str | None = None) -> str:
        """Text of the trailing user turn, wrapped in the persona when one is set."""
        prompt_with_name = with_author(prompt, author_name)
        if not self.persona.strip():
            return prompt_with_name
        return (
            "Use this personality to answer:\n"
            f'"""\n{self._persona_for(author_name)}\n"""\n\n'
            f"User's Question: {prompt_with_name}"
        )

    def build_turns(
        self,
        conversation_key: str,
        prompt: str,
        author_name: str | None = None,
    ) -> list[Turn]:
        """
        Build the ordered turns for a chat continuation.

        Args:
            conversation_key: History bucket to read the window from.
            prompt: The new user message (trigger token already stripped).
            author_name: Display name of the speaker, set for group chats.

        Returns:
            The last ``window`` stored turns, oldest first, followed by the new user turn.
        """
        turns: list[Turn] = []
        for stored in self.history.recent(conversation_key, self.window):
            text = stored.text
            if stored.role == "user":
                text = with_author(text, stored.author_name)
            turns.append(Turn(role=stored.role, text=text))
        turns.append(Turn(role="user", text=self.build_prompt(prompt, author_name)))
        return turns

    def build_vision_prompt(self, caption: str, author_name: str | None = None) -> str:
        caption = caption.strip() or DEFAULT_IMAGE_PROMPT
        if not self.persona.strip():
            return caption
        return (
            f"Main Instruction:\n{IMAGE_ANALYSIS_INSTRUCTION}\n\n"
            f'General Personality:\n"""\n{self._persona_for(author_name)}\n"""\n\n'
            f"User's Question about the image:\n{caption}"
        )
