"""Value Pipeline — override, default, prefix and postfix rules per operator."""

from typing import Any, Optional


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


class ValuePipeline:
    """Per-operator value tables applied to a raw cell before coercion.

    Order: an override replaces the value outright; a default fills an empty
    value; prefix and postfix are then wrapped around the string form.
    """

    def __init__(
        self,
        defaults: Optional[dict[str, Any]] = None,
        overrides: Optional[dict[str, Any]] = None,
        prefixes: Optional[dict[str, str]] = None,
        postfixes: Optional[dict[str, str]] = None,
    ):
        self.defaults: dict[str, Any] = dict(defaults or {})
        self.overrides: dict[str, Any] = dict(overrides or {})
        self.prefixes: dict[str, str] = dict(prefixes or {})
        self.postfixes: dict[str, str] = dict(postfixes or {})

    def set_default_value(self, operator: str, value: Any) -> None:
        self.defaults[operator] = value

    def set_override_value(self, operator: str, value: Any) -> None:
        self.overrides[operator] = value

    def set_prefix(self, operator: str, value: str) -> None:
        self.prefixes[operator] = value

    def set_postfix(self, operator: str, value: str) -> None:
        self.postfixes[operator] = value

    def default_value(self, operator: str) -> Any:
        return self.defaults.get(operator)

    def override_value(self, operator: str) -> Any:
        return self.overrides.get(operator)

    def prefix(self, operator: str) -> Optional[str]:
        return self.prefixes.get(operator)

    def postfix(self, operator: str) -> Optional[str]:
        return self.postfixes.get(operator)

    def prepare(self, operator: str, raw_value: Any) -> Any:
        value = raw_value

        override = self.overrides.get(operator)
        if override is not None:
            value = override
        elif is_empty(value) and self.defaults.get(operator) is not None:
            value = self.defaults[operator]

        prefix = self.prefixes.get(operator)
        postfix = self.postfixes.get(operator)
        if prefix is not None or postfix is not None:
            text = "" if value is None else str(value)
            value = f"{prefix or ''}{text}{postfix or ''}"

        return value
