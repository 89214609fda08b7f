from __future__ import annotations

import os
import re
import warnings
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_TIMEOUT = 60.0
DEFAULT_TEMPERATURE = 0.7

# ${NAME} or ${NAME:default}; the default may be empty and may contain ':'.
_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::([^}]*))?\}")


def resolve_placeholders(value: str | None, env: Mapping[str, str] | None = None) -> str | None:
    """Expand ``${NAME}`` / ``${NAME:default}`` references against the environment.

    An unset variable without a default expands to an empty string.
    """
    if value is None:
        return None
    source = os.environ if env is None else env

    def _sub(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        found = source.get(name)
        if found:
            return found
        return default if default is not None else ""

    return _PLACEHOLDER.sub(_sub, value)


def _first_env(*names: str, env: Mapping[str, str]) -> str | None:
    sources = [(name, env[name]) for name in names if env.get(name)]
    if not sources:
        return None
    if len(sources) > 1 and len({v for _, v in sources}) > 1:
        keys = ", ".join(k for k, _ in sources)
        warnings.warn(
            f"Multiple settings detected ({keys}); using {sources[0][0]}",
            stacklevel=3,
        )
    return sources[0][1]


@dataclass(frozen=True, slots=True)
class ClientSettings:
    """Connection settings for the completion endpoint.

    Resolution order for each value: explicit argument, ``AIENTITY_*``
    variable, ``OPENAI_*`` variable, built-in default.
    """

    model: str = DEFAULT_MODEL
    endpoint: str = DEFAULT_ENDPOINT
    api_key: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    temperature: float = DEFAULT_TEMPERATURE

    @classmethod
    def from_env(
        cls,
        *,
        model: str | None = None,
        endpoint: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        temperature: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ClientSettings:
        source = os.environ if env is None else env
        resolved_model = (
            resolve_placeholders(model, source)
            or _first_env("AIENTITY_MODEL", "OPENAI_MODEL", env=source)
            or DEFAULT_MODEL
        )
        resolved_endpoint = (
            resolve_placeholders(endpoint, source)
            or _first_env("AIENTITY_API_URL", "OPENAI_API_URL", env=source)
            or DEFAULT_ENDPOINT
        )
        resolved_key = resolve_placeholders(api_key, source) or _first_env(
            "AIENTITY_API_KEY", "OPENAI_API_KEY", env=source
        )
        if timeout is None:
            raw_timeout = source.get("AIENTITY_TIMEOUT")
            try:
                timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
            except ValueError:
                warnings.warn(
                    f"Ignoring invalid AIENTITY_TIMEOUT={raw_timeout!r}",
                    stacklevel=2,
                )
                timeout = DEFAULT_TIMEOUT
        return cls(
            model=resolved_model,
            endpoint=resolved_endpoint,
            api_key=resolved_key or None,
            timeout=timeout,
            temperature=DEFAULT_TEMPERATURE if temperature is None else temperature,
        )
