"""
Internationalization (i18n) module for the DNS reconciler.

Provides translations for all user-facing messages in German (de) and
English (en), plus the display format used for resolution timestamps.
"""

from datetime import datetime
from typing import Optional


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"de", "en"})
DEFAULT_LANGUAGE = "en"


# Translation dictionary with all messages
# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Duplicate input warnings
    "warning.duplicate_unresolved": {
        "de": "{domain} steht bereits auf der Liste der offenen Domains",
        "en": "{domain} is already in the unresolved list",
    },
    "warning.duplicate_resolved": {
        "de": "{domain} ist bereits aufgelöst",
        "en": "{domain} is already resolved",
    },
    "warning.duplicate_server": {
        "de": "Server '{name}' ist bereits bekannt",
        "en": "Server '{name}' is already known",
    },

    # Resolution notifications
    "notification.resolved": {
        "de": "{domain} aufgelöst: {pairs}",
        "en": "{domain} resolved: {pairs}",
    },
    "notification.ip_changed": {
        "de": "IP von {domain} geändert: {old} -> {new}",
        "en": "{domain} IP changed: {old} -> {new}",
    },
    "notification.unmatched": {
        "de": "unbekannt",
        "en": "unmatched",
    },
    "notification.none": {
        "de": "keine",
        "en": "none",
    },

    # Self-test messages
    "selftest.header": {
        "de": "DNS-Reconciler Selbsttest",
        "en": "DNS Reconciler Self-Test",
    },
    "selftest.config_validation": {
        "de": "Konfigurationsvalidierung:",
        "en": "Configuration Validation:",
    },
    "selftest.config_valid": {
        "de": "Konfiguration ist gültig",
        "en": "Configuration is valid",
    },
    "selftest.config_invalid": {
        "de": "Konfiguration ist ungültig",
        "en": "Configuration is invalid",
    },
    "selftest.warnings": {
        "de": "Warnungen:",
        "en": "Warnings:",
    },
    "selftest.resolver": {
        "de": "Resolver-Test:",
        "en": "Resolver Probe:",
    },
    "selftest.resolver_ok": {
        "de": "{domain} aufgelöst über {endpoint}",
        "en": "{domain} resolved via {endpoint}",
    },
    "selftest.resolver_failed": {
        "de": "{domain} konnte über {endpoint} nicht aufgelöst werden",
        "en": "{domain} could not be resolved via {endpoint}",
    },
    "selftest.resolver_skipped": {
        "de": "Übersprungen (Simulationsmodus)",
        "en": "Skipped (simulation mode)",
    },
    "selftest.passed": {
        "de": "Selbsttest erfolgreich",
        "en": "Self-test passed",
    },
    "selftest.failed": {
        "de": "Selbsttest fehlgeschlagen",
        "en": "Self-test failed",
    },
    "selftest.duration": {
        "de": "Gesamtdauer",
        "en": "Total duration",
    },

    # CLI messages
    "cli.added": {
        "de": "{count} Domain(s) hinzugefügt",
        "en": "{count} domain(s) added",
    },
    "cli.resolving": {
        "de": "Löse auf: {domain}",
        "en": "Resolving: {domain}",
    },
    "cli.resolve_failed": {
        "de": "{domain} konnte nicht aufgelöst werden",
        "en": "{domain} could not be resolved",
    },
    "cli.batch_busy": {
        "de": "Eine Stapelverarbeitung läuft bereits",
        "en": "A batch operation is already running",
    },
    "cli.removed": {
        "de": "Entfernt: {item}",
        "en": "Removed: {item}",
    },
    "cli.not_found": {
        "de": "Nicht gefunden: {item}",
        "en": "Not found: {item}",
    },
    "cli.removed_unmatched": {
        "de": "{count} nicht zugeordnete(r) Eintrag/Einträge entfernt",
        "en": "{count} unmatched record(s) removed",
    },
    "cli.unresolved_header": {
        "de": "Offene Domains:",
        "en": "Unresolved domains:",
    },
    "cli.resolved_header": {
        "de": "Aufgelöste Domains:",
        "en": "Resolved domains:",
    },
    "cli.servers_header": {
        "de": "Bekannte Server:",
        "en": "Known servers:",
    },
    "cli.empty": {
        "de": "(leer)",
        "en": "(empty)",
    },
    "cli.simulation": {
        "de": "Simulationsmodus aktiv - keine echten DNS-Anfragen",
        "en": "Simulation mode enabled - no real DNS queries",
    },
}


_TIMESTAMP_FORMATS = {
    "de": "%d.%m.%Y, %H:%M:%S",
    "en": "%b %d, %Y, %I:%M:%S %p",
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'warning.duplicate_resolved')
        language: Language code ('de' or 'en'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('notification.unmatched', 'en')
        'unmatched'
        >>> get_message('warning.duplicate_resolved', 'en', domain='a.com')
        'a.com is already resolved'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)

    if translations is None:
        return key

    message = translations.get(language)

    if message is None:
        message = translations.get(DEFAULT_LANGUAGE)

    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            # Leave the template unformatted
            pass

    return message


def format_timestamp(epoch_seconds: float, language: Optional[str] = None) -> str:
    """
    Format an epoch timestamp in local time for display.

    Args:
        epoch_seconds: Seconds since the epoch
        language: 'de' for German, 'en' for English

    Returns:
        Formatted timestamp string
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE
    return datetime.fromtimestamp(epoch_seconds).strftime(_TIMESTAMP_FORMATS[language])


def get_all_message_keys() -> set[str]:
    """Get all available message keys."""
    return set(TRANSLATIONS.keys())


def has_translation(key: str, language: str) -> bool:
    """
    Check if a translation exists for a key and language.

    Args:
        key: The message key
        language: The language code

    Returns:
        True if translation exists, False otherwise.
    """
    translations = TRANSLATIONS.get(key)
    if translations is None:
        return False
    return language in translations


def get_missing_translations(language: str) -> set[str]:
    """Get all message keys that are missing translations for a language."""
    return {
        key for key, translations in TRANSLATIONS.items()
        if language not in translations
    }


def validate_translations() -> dict[str, set[str]]:
    """
    Validate that all languages have all translations.

    Returns:
        Dictionary mapping language codes to sets of missing message keys.
        Empty sets indicate complete translations.
    """
    return {
        language: get_missing_translations(language)
        for language in SUPPORTED_LANGUAGES
    }
