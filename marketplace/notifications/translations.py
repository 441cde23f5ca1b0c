"""Locale catalogs for notification texts.

Catalogs are YAML files under ``locales/`` named after their locale
(``en.yml``, ``sv.yml``). Each file nests its keys under the locale code:

    en:
      notifications:
        new_applicant: New applicant

Keys are addressed with dots (``notifications.new_applicant``). Lookups fall
back to the default locale, and a key missing everywhere yields the
``translation missing: <locale>.<key>`` sentinel instead of raising.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

from marketplace.config.models import LocalizationConfig
from marketplace.domain.models import User

from .models import NotificationError

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).parent / "locales"
MISSING_PREFIX = "translation missing"


class Translator:
    """Looks up translated strings in the shipped YAML catalogs."""

    def __init__(
        self,
        default_locale: str = "en",
        available_locales: Optional[Iterable[str]] = None,
        locales_dir: Optional[Path] = None,
    ):
        """Load catalogs.

        Args:
            default_locale: Locale used when a user has none, or an unknown one
            available_locales: Locales to load (defaults to every catalog file)
            locales_dir: Directory holding ``<locale>.yml`` files

        Raises:
            NotificationError: If a catalog cannot be read, or the default
                locale has no catalog
        """
        self.default_locale = default_locale.strip().lower()
        self.locales_dir = Path(locales_dir) if locales_dir else LOCALES_DIR

        if available_locales is None:
            codes = sorted(path.stem for path in self.locales_dir.glob("*.yml"))
        else:
            codes = [code.strip().lower() for code in available_locales]

        self._catalogs: Dict[str, Dict[str, str]] = {}
        for code in codes:
            path = self.locales_dir / f"{code}.yml"
            if not path.exists():
                logger.warning(
                    f"No catalog for locale '{code}' in {self.locales_dir}",
                    extra={"event": "translations.catalog_missing", "locale": code},
                )
                continue
            self._catalogs[code] = self._load_catalog(path, code)

        if self.default_locale not in self._catalogs:
            raise NotificationError(
                f"No catalog for default locale '{self.default_locale}' in {self.locales_dir}"
            )

        logger.debug(
            f"Loaded translation catalogs: {', '.join(self._catalogs)}",
            extra={"event": "translations.loaded", "locales": list(self._catalogs)},
        )

    @classmethod
    def from_config(cls, config: LocalizationConfig) -> "Translator":
        return cls(
            default_locale=config.default_locale,
            available_locales=config.available_locales,
        )

    @staticmethod
    def _load_catalog(path: Path, code: str) -> Dict[str, str]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise NotificationError(f"Failed to load catalog {path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get(code), dict):
            raise NotificationError(f"Catalog {path} must have '{code}' as its top-level key")

        return _flatten(data[code])

    @property
    def locales(self) -> List[str]:
        return list(self._catalogs)

    def has_key(self, key: str, locale: str) -> bool:
        """True if ``locale``'s own catalog defines ``key`` (no fallback)."""
        return key in self._catalogs.get(locale, {})

    def keys(self, locale: str) -> List[str]:
        return sorted(self._catalogs.get(locale, {}))

    def missing_keys(self, keys: Iterable[str]) -> Dict[str, List[str]]:
        """Per locale, the keys its own catalog lacks (locales lacking none are omitted)."""
        keys = list(keys)
        report = {}
        for code, catalog in self._catalogs.items():
            missing = [key for key in keys if key not in catalog]
            if missing:
                report[code] = missing
        return report

    def resolve_locale(self, user: Optional[User]) -> str:
        """The user's locale if a catalog exists for it, else the default."""
        locale = user.locale if user is not None else None
        if locale and locale in self._catalogs:
            return locale
        return self.default_locale

    def translate(self, key: str, locale: Optional[str] = None) -> str:
        """Translate ``key``, falling back to the default locale.

        Never raises; returns ``translation missing: <locale>.<key>`` when
        no catalog defines the key.
        """
        locale = (locale or self.default_locale).lower()
        for code in (locale, self.default_locale):
            value = self._catalogs.get(code, {}).get(key)
            if value is not None:
                return value

        logger.warning(
            f"Translation missing: {locale}.{key}",
            extra={"event": "translations.missing", "locale": locale, "key": key},
        )
        return f"{MISSING_PREFIX}: {locale}.{key}"


def is_missing(text: str) -> bool:
    """True if ``text`` is the missing-translation sentinel."""
    return text.startswith(f"{MISSING_PREFIX}: ")


def _flatten(tree: dict, prefix: str = "") -> Dict[str, str]:
    flat = {}
    for name, value in tree.items():
        key = f"{prefix}.{name}" if prefix else str(name)
        if isinstance(value, dict):
            flat.update(_flatten(value, key))
        elif value is not None:
            flat[key] = str(value)
    return flat
