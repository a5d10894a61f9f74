"""Terminal prompts (prompt_toolkit) for mapping P&L labels to tags.

Kept apart from the CLI so the prompts can be driven from a pipe input in
tests.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator


def _session(kb: KeyBindings, session: PromptSession | None) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


class _TagResolver:
    """Case-insensitive exact or unique-prefix lookup over the allowed tags."""

    def __init__(self, tags: Sequence[str]) -> None:
        self._tags = list(tags)
        self._lower = {t.lower(): t for t in self._tags}

    def __call__(self, text: str) -> str | None:
        s = text.strip().lower()
        if not s:
            return None
        if s in self._lower:
            return self._lower[s]
        hits = [t for t in self._tags if t.lower().startswith(s)]
        return hits[0] if len(hits) == 1 else None


def select_classification(
    label: str,
    tags: Sequence[str] | Iterable[str],
    *,
    default: str = "",
    session: PromptSession | None = None,
    message: str | None = None,
) -> str | None:
    """Ask which tag ``label`` belongs to.

    The buffer starts with ``default``. Enter accepts an exact tag or a
    unique prefix of one (case-insensitive). An empty buffer skips the label
    and returns ``None``; so does Esc.
    """

    words = list(tags)
    resolve = _TagResolver(words)
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=True)

    kb = KeyBindings()

    @kb.add("escape", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised interactively
        event.app.exit(result=None)

    @kb.add("enter", eager=True)
    def _(event) -> None:
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        hit = resolve(b.document.text)
        if hit is not None and hit != b.document.text:
            b.text = hit
            b.cursor_position = len(hit)
        b.validate_and_handle()

    class _V(Validator):
        def validate(self, document) -> None:
            if not document.text.strip():
                return
            if resolve(document.text) is None:
                raise ValidationError(message=f"Unknown classification: {document.text.strip()!r}")

    sess = _session(kb, session)
    result = sess.prompt(
        message or f"{label} → ",
        default=default,
        completer=completer,
        validator=_V(),
        validate_while_typing=False,
        style=Style.from_dict({"validation-toolbar": "bg:#aa0000 #ffffff"}),
    )
    if result is None:
        return None
    return resolve(result)


def collect_classifications(
    labels: Iterable[str],
    tags: Sequence[str],
    *,
    suggestions: Mapping[str, str] | None = None,
    session: PromptSession | None = None,
) -> dict[str, str]:
    """Prompt once per label; skipped labels are left out of the result."""

    hints = suggestions or {}
    chosen: dict[str, str] = {}
    for label in labels:
        tag = select_classification(label, tags, default=hints.get(label, ""), session=session)
        if tag is not None:
            chosen[label] = tag
    return chosen


__all__ = ["select_classification", "collect_classifications"]
