"""
Input fields — one operator-editable parameter of a flow.

Every field carries exactly one input variant:

    FreeFormInput   arbitrary text, optional placeholder and length limit
    ChoiceInput     one of a fixed list of options, cycled with ←/→

Both variants share the same small interface so the wizard never has to
ask which one it is holding.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class FieldVariant(ABC):
    """Capability interface shared by all input variants."""

    focused: bool = False

    @abstractmethod
    def value(self) -> str:
        """The current raw value."""

    @abstractmethod
    def set_value(self, value: str) -> None:
        """Replace the raw value."""

    @abstractmethod
    def handle_key(self, key: str) -> bool:
        """Apply a keystroke. Returns True if the value changed."""

    def focus(self) -> None:
        self.focused = True

    def blur(self) -> None:
        self.focused = False


@dataclass
class FreeFormInput(FieldVariant):
    """Free-form text entry."""

    placeholder: str = ""
    char_limit: int = 0           # 0 = unlimited
    text: str = ""
    focused: bool = False

    def value(self) -> str:
        return self.text

    def set_value(self, value: str) -> None:
        self.text = value[: self.char_limit] if self.char_limit else value

    def handle_key(self, key: str) -> bool:
        if not self.focused:
            return False
        if key == "backspace":
            if not self.text:
                return False
            self.text = self.text[:-1]
            return True
        if key == "ctrl+u":
            changed = bool(self.text)
            self.text = ""
            return changed
        if len(key) == 1 and key.isprintable():
            if self.char_limit and len(self.text) >= self.char_limit:
                return False
            self.text += key
            return True
        return False


@dataclass
class ChoiceInput(FieldVariant):
    """Single choice among fixed options."""

    options: list[str] = field(default_factory=list)
    selected: int = 0
    prev_keys: tuple[str, ...] = ("left",)
    next_keys: tuple[str, ...] = ("right",)
    focused: bool = False

    def value(self) -> str:
        if not self.options:
            return ""
        return self.options[self.selected]

    def set_value(self, value: str) -> None:
        if value not in self.options:
            raise ValueError(f"'{value}' is not one of: {', '.join(self.options)}")
        self.selected = self.options.index(value)

    def handle_key(self, key: str) -> bool:
        if not self.focused or not self.options:
            return False
        if key in self.prev_keys:
            self.selected = (self.selected - 1) % len(self.options)
            return True
        if key in self.next_keys:
            self.selected = (self.selected + 1) % len(self.options)
            return True
        return False


@dataclass
class InputField:
    """A titled, validated parameter backed by one input variant."""

    key: str
    title: str
    variant: FieldVariant
    help_text: str = ""
    required: bool = False
    default: str = ""

    converted: str | None = None
    error: str | None = None
    info: str | None = None

    @property
    def is_choice(self) -> bool:
        return isinstance(self.variant, ChoiceInput)

    @property
    def focused(self) -> bool:
        return self.variant.focused

    def value(self) -> str:
        return self.variant.value()

    def set_value(self, value: str) -> None:
        self.variant.set_value(value)

    def focus(self) -> None:
        self.variant.focus()

    def blur(self) -> None:
        self.variant.blur()

    def handle_key(self, key: str) -> bool:
        return self.variant.handle_key(key)

    def effective_value(self) -> str:
        """Converted value if any, else the raw value, else the default."""
        if self.converted is not None:
            return self.converted
        return self.value() or self.default

    def set_error(self, message: str) -> None:
        self.error = message

    def set_info(self, message: str) -> None:
        self.info = message

    def set_converted(self, value: str) -> None:
        self.converted = value

    def reset_validation(self) -> None:
        """Drop the results of the last validation pass; keep the raw value."""
        self.converted = None
        self.error = None
        self.info = None
