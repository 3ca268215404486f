"""Runtime gettext translations for user-facing listing messages."""

from __future__ import annotations

import gettext as _gettext
import os
from collections.abc import Iterable, Sequence
from io import BytesIO
from pathlib import Path
from typing import Final

import polib
from gettext import GNUTranslations, NullTranslations

from .log import logger

__all__ = ["_", "gettext", "ngettext", "install", "reset"]

DOMAIN: Final = "coopview"

_TRANSLATION: NullTranslations = NullTranslations()


def gettext(message: str) -> str:
    """Translate *message* using the active gettext catalogue."""
    return _TRANSLATION.gettext(message)


def ngettext(singular: str, plural: str, number: int) -> str:
    """Translate pluralisable message based on *number*."""
    return _TRANSLATION.ngettext(singular, plural, number)


_: Final = gettext


def install(
    localedir: str | os.PathLike[str],
    languages: Iterable[str] | None = None,
    *,
    domain: str = DOMAIN,
) -> NullTranslations:
    """Load translations for *domain* from *localedir* and activate them.

    Compiled ``.mo`` catalogues are preferred. When none is found for the
    requested languages, the matching ``.po`` source is parsed with
    :mod:`polib` instead so catalogues work without a compile step.
    """
    localedir_path = Path(localedir)
    requested = _prepare_language_list(languages)
    translation = _gettext.translation(
        domain,
        localedir=str(localedir_path),
        languages=requested or None,
        fallback=True,
    )
    if type(translation) is NullTranslations:
        fallback = _load_po_translation(domain, localedir_path, requested)
        if fallback is not None:
            translation = fallback
    _set_translation(translation)
    return translation


def reset() -> None:
    """Drop the active catalogue and return to untranslated messages."""
    _set_translation(NullTranslations())


def _set_translation(translation: NullTranslations) -> None:
    global _TRANSLATION
    _TRANSLATION = translation


def _prepare_language_list(languages: Iterable[str] | None) -> list[str]:
    if languages is None:
        return _languages_from_environment()
    return _dedupe(languages)


def _languages_from_environment() -> list[str]:
    raw: list[str] = []
    for name in ("LANGUAGE", "LC_ALL", "LC_MESSAGES", "LANG"):
        value = os.environ.get(name)
        if not value:
            continue
        raw.extend(token.strip() for token in value.split(":") if token.strip())
    return _dedupe(token.split(".", 1)[0] for token in raw)


def _dedupe(languages: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for language in languages:
        candidates = [language]
        if "_" in language:
            candidates.append(language.split("_", 1)[0])
        for candidate in candidates:
            if candidate and candidate not in seen:
                seen.add(candidate)
                ordered.append(candidate)
    return ordered


def _load_po_translation(
    domain: str,
    localedir: Path,
    languages: Sequence[str],
) -> NullTranslations | None:
    for language in languages:
        po_path = localedir / language / "LC_MESSAGES" / f"{domain}.po"
        if not po_path.exists():
            continue
        try:
            catalog = polib.pofile(str(po_path))
        except (OSError, ValueError, UnicodeDecodeError) as exc:
            logger.warning("Ignoring unreadable catalogue %s: %s", po_path, exc)
            continue
        return GNUTranslations(BytesIO(catalog.to_binary()))
    return None
