"""Message bank: the static catalog of motivational push texts.

Provides:
- Message: one immutable catalog entry
- MessageBank: immutable catalog with tone-aware random selection
- personalize(): display-name substitution into a template
- validate_catalog(): load-time invariants for a catalog
- DEFAULT_MESSAGES / default_message_bank(): the shipped catalog

Selection rules:
- Unknown or missing tone variants are treated as female (the user default)
- Eligible entries are those whose variant matches OR is neutral
- Choice is uniform over the eligible entries; the randomness source is injectable
- An empty eligible set falls back to the first catalog entry instead of failing

The bank is built once and handed to the dispatch job and the on-demand send
path; it never mutates, so concurrent readers need no locking.
"""

import random
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from precious.db.models import ToneVariant

NAME_PLACEHOLDER = "{{name}}"


class MessageCategory(str, Enum):
    """Emotional-support category of a catalog entry."""

    affirmation = "affirmation"
    motivation = "motivation"
    comfort = "comfort"
    appreciation = "appreciation"
    self_worth = "self_worth"


REQUIRED_CATEGORIES = frozenset(MessageCategory)


@dataclass(frozen=True)
class Message:
    """One catalog entry.

    Attributes:
        id: Stable id, unique within the catalog. Sent to clients as push metadata.
        text: Template; may contain NAME_PLACEHOLDER any number of times.
        category: Emotional-support category.
        gender: Tone variant the text is written in.
    """

    id: str
    text: str
    category: MessageCategory
    gender: ToneVariant


def personalize(template: str, display_name: str | None) -> str:
    """Substitute the display name for every placeholder in the template.

    An empty (or missing) display name removes the placeholder entirely.
    Templates without a placeholder are returned unchanged.
    """
    return template.replace(NAME_PLACEHOLDER, display_name or "")


class CatalogError(ValueError):
    """Raised when a catalog violates its load-time invariants."""


def validate_catalog(messages: Iterable[Message]) -> None:
    """Check catalog invariants once at load time.

    - ids are unique
    - every required category has at least one entry
    - every represented category has a neutral entry
    - every category has more than one female entry

    Raises:
        CatalogError: On the first violated invariant.
    """
    messages = tuple(messages)
    if not messages:
        raise CatalogError("Catalog is empty")

    seen: set[str] = set()
    for message in messages:
        if message.id in seen:
            raise CatalogError(f"Duplicate message id: {message.id}")
        seen.add(message.id)

    represented = {m.category for m in messages}
    missing = REQUIRED_CATEGORIES - represented
    if missing:
        names = ", ".join(sorted(c.value for c in missing))
        raise CatalogError(f"Catalog is missing categories: {names}")

    for category in represented:
        in_category = [m for m in messages if m.category == category]
        if not any(m.gender == ToneVariant.neutral for m in in_category):
            raise CatalogError(f"Category {category.value} has no neutral entry")
        if sum(1 for m in in_category if m.gender == ToneVariant.female) < 2:
            raise CatalogError(f"Category {category.value} needs multiple female entries")


class MessageBank:
    """Immutable message catalog with tone-aware selection."""

    def __init__(self, messages: Iterable[Message], rng: random.Random | None = None):
        """Build a bank over a fixed catalog.

        Args:
            messages: Catalog entries; copied into an immutable tuple.
            rng: Randomness source. Defaults to a private random.Random().

        Raises:
            CatalogError: If the catalog is empty.
        """
        self._messages: tuple[Message, ...] = tuple(messages)
        if not self._messages:
            raise CatalogError("Catalog is empty")
        self._rng = rng or random.Random()

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._messages

    def __len__(self) -> int:
        return len(self._messages)

    def get(self, message_id: str) -> Message | None:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def eligible_messages(self, variant: "ToneVariant | str | None") -> list[Message]:
        """Entries matching the variant (unknown → female) plus all neutral entries."""
        wanted = ToneVariant.coerce(variant)
        return [
            m for m in self._messages if m.gender == wanted or m.gender == ToneVariant.neutral
        ]

    def select_message(self, variant: "ToneVariant | str | None" = None) -> Message:
        """Pick a random eligible message for the tone variant.

        Never raises: an empty eligible set falls back to the first entry.
        """
        eligible = self.eligible_messages(variant)
        if not eligible:
            return self._messages[0]
        return self._rng.choice(eligible)


def _m(id_: str, text: str, category: MessageCategory, gender: ToneVariant) -> Message:
    return Message(id=id_, text=text, category=category, gender=gender)


_C = MessageCategory
_F = ToneVariant.female
_M = ToneVariant.male
_N = ToneVariant.neutral

DEFAULT_MESSAGES: tuple[Message, ...] = (
    # affirmation
    _m("aff-1", "{{name}}, ты хорошая", _C.affirmation, _F),
    _m("aff-2", "Ты достаточно. Просто такая, какая есть", _C.affirmation, _F),
    _m("aff-3", "{{name}}, ты заслуживаешь любви", _C.affirmation, _F),
    _m("aff-4", "Ты ценная. Не забывай об этом", _C.affirmation, _F),
    _m("aff-m-1", "{{name}}, ты хороший", _C.affirmation, _M),
    _m("aff-m-2", "Ты достаточно. Просто такой, какой есть", _C.affirmation, _M),
    _m("aff-m-3", "Ты ценный. Не забывай об этом", _C.affirmation, _M),
    _m("aff-n-1", "{{name}}, ты замечательный человек", _C.affirmation, _N),
    # motivation
    _m("mot-1", "{{name}}, ты справишься!", _C.motivation, _F),
    _m("mot-2", "У тебя всё получится", _C.motivation, _F),
    _m("mot-3", "Ты сильнее, чем думаешь", _C.motivation, _F),
    _m("mot-4", "Каждый маленький шаг — это прогресс", _C.motivation, _F),
    _m("mot-m-1", "{{name}}, ты справишься!", _C.motivation, _M),
    _m("mot-m-2", "Ты сильнее, чем думаешь", _C.motivation, _M),
    _m("mot-n-1", "Верю в тебя!", _C.motivation, _N),
    # comfort
    _m("com-1", "Всё будет хорошо", _C.comfort, _F),
    _m("com-2", "{{name}}, ты в безопасности", _C.comfort, _F),
    _m("com-3", "Можно просто быть. Не нужно ничего доказывать", _C.comfort, _F),
    _m("com-4", "Сегодня можно отдохнуть", _C.comfort, _F),
    _m("com-m-1", "{{name}}, ты не один", _C.comfort, _M),
    _m("com-m-2", "Можно просто быть. Не нужно ничего доказывать", _C.comfort, _M),
    _m("com-n-1", "Ты не одна/один", _C.comfort, _N),
    # appreciation
    _m("app-1", "{{name}}, ты умничка!", _C.appreciation, _F),
    _m("app-2", "Ты молодец, что стараешься", _C.appreciation, _F),
    _m("app-3", "Горжусь тобой", _C.appreciation, _F),
    _m("app-m-1", "{{name}}, ты молодец!", _C.appreciation, _M),
    _m("app-m-2", "Спасибо, что стараешься", _C.appreciation, _M),
    _m("app-n-1", "Спасибо, что ты есть", _C.appreciation, _N),
    # self_worth
    _m("sw-1", "Ты важная", _C.self_worth, _F),
    _m("sw-2", "{{name}}, мир лучше, потому что ты в нём есть", _C.self_worth, _F),
    _m("sw-3", "Ты уникальная и неповторимая", _C.self_worth, _F),
    _m("sw-m-1", "Ты важный", _C.self_worth, _M),
    _m("sw-m-2", "Ты уникальный и неповторимый", _C.self_worth, _M),
    _m("sw-n-1", "{{name}}, твои чувства важны", _C.self_worth, _N),
)


def default_message_bank(rng: random.Random | None = None) -> MessageBank:
    """Build the shipped catalog after checking its invariants."""
    validate_catalog(DEFAULT_MESSAGES)
    return MessageBank(DEFAULT_MESSAGES, rng=rng)
