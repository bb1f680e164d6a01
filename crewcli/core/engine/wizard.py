"""
Input wizard — collect, validate and convert a flow's parameters.

Phases:
    EDITING     Focus moves over the fields and the submit button.
    CONFIRMING  Values were validated; the operator proceeds or edits.
    SUBMITTED   The parameter store is frozen and handed to the run.

Focus index while editing ranges over ``[0, n]`` where ``n`` is the
number of visible fields and ``n`` itself is the submit button. While
confirming, ``n`` is "proceed" and ``n + 1`` is "edit"; "proceed" is
unreachable while any field has an error.

Field conversion runs in dependency order so a converter can read the
converted values of the fields it declared in ``after``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from crewcli.core.models.field import ChoiceInput, FreeFormInput, InputField
from crewcli.core.models.params import ParameterStore

logger = logging.getLogger(__name__)

REQUIRED_MESSAGE = "required"


class WizardPhase(StrEnum):
    EDITING = "editing"
    CONFIRMING = "confirming"
    SUBMITTED = "submitted"


class WizardStateError(RuntimeError):
    """The wizard was driven outside its valid phase. Programming error."""


class FieldError(Exception):
    """A field value failed validation or conversion.

    The message is shown next to the field.
    """


@dataclass
class ConversionContext:
    """What a converter may look at and write to."""

    store: ParameterStore
    fields: Mapping[str, InputField]
    scratch_dir: Path | None = None
    log: logging.Logger = logger

    def field(self, key: str) -> InputField:
        return self.fields[key]


Converter = Callable[[ConversionContext, InputField], None]
Visibility = Callable[[Mapping[str, str]], bool]


@dataclass(frozen=True)
class FieldSpec:
    """Declarative description of one wizard field."""

    key: str
    title: str
    help_text: str = ""
    required: bool = False
    default: str = ""
    choices: tuple[str, ...] | None = None
    placeholder: str = ""
    char_limit: int = 0
    convert: Converter | None = None
    after: tuple[str, ...] = ()
    visible: Visibility | None = None
    prefill_default: bool = False

    def create(self, initial: str | None) -> InputField:
        if self.choices is not None:
            variant = ChoiceInput(options=list(self.choices))
        else:
            variant = FreeFormInput(placeholder=self.placeholder, char_limit=self.char_limit)

        input_field = InputField(
            key=self.key,
            title=self.title,
            variant=variant,
            help_text=self.help_text,
            required=self.required,
            default=self.default,
        )
        if initial is None and self.prefill_default:
            initial = self.default
        if initial:
            try:
                input_field.set_value(initial)
            except ValueError:
                logger.warning("Ignoring preset %r for field %s", initial, self.key)
        return input_field


def conversion_order(specs: list[FieldSpec]) -> list[str]:
    """Order field keys so every field comes after the fields it reads.

    Stable with respect to declaration order (Kahn's algorithm, always
    taking the earliest ready field).

    Raises:
        ValueError: on an unknown dependency or a cycle.
    """
    keys = [s.key for s in specs]
    known = set(keys)
    for spec in specs:
        for dep in spec.after:
            if dep not in known:
                raise ValueError(f"Field '{spec.key}' depends on unknown field '{dep}'")

    pending = {s.key: set(s.after) for s in specs}
    ordered: list[str] = []
    while pending:
        ready = [k for k in keys if k in pending and not pending[k]]
        if not ready:
            raise ValueError(f"Dependency cycle among fields: {sorted(pending)}")
        key = ready[0]
        ordered.append(key)
        del pending[key]
        for deps in pending.values():
            deps.discard(key)
    return ordered


class InputWizard:
    """State machine behind the parameter form."""

    def __init__(
        self,
        specs: list[FieldSpec],
        store: ParameterStore,
        *,
        scratch_dir: Path | None = None,
        log: logging.Logger | None = None,
    ):
        self._specs = {s.key: s for s in specs}
        self._order = conversion_order(specs)
        self._store = store
        self._scratch_dir = scratch_dir
        self._log = log or logger

        self._fields: dict[str, InputField] = {
            s.key: s.create(store.get(s.key)) for s in specs
        }
        self._phase = WizardPhase.EDITING
        self._has_errors = False
        self._index = 0
        self._move_to_next_empty()
        self._update_focus()

    # ── Inspection ──────────────────────────────────────────────

    @property
    def phase(self) -> WizardPhase:
        return self._phase

    @property
    def has_errors(self) -> bool:
        return self._has_errors

    @property
    def store(self) -> ParameterStore:
        return self._store

    @property
    def focus_index(self) -> int:
        return self._index

    @property
    def fields(self) -> list[InputField]:
        """Currently visible fields, in display order."""
        raw = {k: f.value() for k, f in self._fields.items()}
        return [
            self._fields[key]
            for key, spec in self._specs.items()
            if spec.visible is None or spec.visible(raw)
        ]

    @property
    def num_fields(self) -> int:
        return len(self.fields)

    @property
    def focused_field(self) -> InputField | None:
        visible = self.fields
        if self._phase == WizardPhase.EDITING and self._index < len(visible):
            return visible[self._index]
        return None

    @property
    def on_submit(self) -> bool:
        return self._phase == WizardPhase.EDITING and self._index == self.num_fields

    @property
    def on_proceed(self) -> bool:
        return self._phase == WizardPhase.CONFIRMING and self._index == self.num_fields

    @property
    def on_edit(self) -> bool:
        return self._phase == WizardPhase.CONFIRMING and self._index == self.num_fields + 1

    def field(self, key: str) -> InputField:
        return self._fields[key]

    # ── Events ──────────────────────────────────────────────────

    def handle_key(self, key: str) -> WizardPhase:
        """Apply one keystroke and return the resulting phase."""
        if self._phase == WizardPhase.EDITING:
            self._handle_editing_key(key)
        elif self._phase == WizardPhase.CONFIRMING:
            self._handle_confirming_key(key)
        return self._phase

    def type_text(self, text: str) -> None:
        """Type each character of ``text`` into the focused field."""
        for char in text:
            self.handle_key(char)

    def focus(self, index: int) -> None:
        """Move editing focus to ``index`` (clamped to ``[0, n]``)."""
        self._require(WizardPhase.EDITING, "focus")
        self._index = max(0, min(index, self.num_fields))
        self._update_focus()

    def set_value(self, key: str, value: str) -> None:
        """Replace a field's raw value directly."""
        self._require(WizardPhase.EDITING, "set a value")
        self._fields[key].set_value(value)
        self._clamp()

    def submit(self) -> bool:
        """Validate every visible field and move to CONFIRMING.

        Returns True if no field has an error.
        """
        self._require(WizardPhase.EDITING, "submit")
        self._validate()
        self._phase = WizardPhase.CONFIRMING
        self._index = self.num_fields + 1 if self._has_errors else self.num_fields
        self._update_focus()
        return not self._has_errors

    def edit(self) -> None:
        """Return from CONFIRMING to EDITING, dropping validation results."""
        self._require(WizardPhase.CONFIRMING, "edit")
        for input_field in self._fields.values():
            input_field.reset_validation()
        self._has_errors = False
        self._phase = WizardPhase.EDITING
        self._index = self.num_fields
        self._update_focus()

    def proceed(self) -> Mapping[str, str]:
        """Freeze the parameter store and finish the wizard."""
        self._require(WizardPhase.CONFIRMING, "proceed")
        if self._has_errors:
            raise WizardStateError("Cannot proceed while fields have errors")

        for input_field in self.fields:
            self._store.set(input_field.key, input_field.effective_value())

        self._phase = WizardPhase.SUBMITTED
        self._log.debug("Wizard submitted: %s", sorted(self._store))
        return self._store.freeze()

    # ── Internals ───────────────────────────────────────────────

    def _handle_editing_key(self, key: str) -> None:
        n = self.num_fields
        old = self._index

        if key == "enter":
            if self._index == n:
                self.submit()
                return
            self._index += 1
            self._move_to_next_empty()
        elif key in ("tab", "down"):
            self._index += 1
        elif key in ("shift+tab", "up"):
            self._index -= 1
        else:
            focused = self.focused_field
            if focused is not None and focused.handle_key(key):
                self._clamp()
            return

        if self._index > n:
            self._index = 0
        elif self._index < 0:
            self._index = n

        if old != self._index:
            self._update_focus()

    def _handle_confirming_key(self, key: str) -> None:
        n = self.num_fields
        if key == "enter":
            if self._index == n:
                self.proceed()
            else:
                self.edit()
            return

        if key == "tab":
            self._index = n + 1 if self._index == n else n
        elif key == "left":
            self._index = n
        elif key == "right":
            self._index = n + 1

        if self._has_errors:
            self._index = n + 1

    def _validate(self) -> None:
        self._has_errors = False
        visible = {f.key for f in self.fields}
        ctx = ConversionContext(
            store=self._store,
            fields=self._fields,
            scratch_dir=self._scratch_dir,
            log=self._log,
        )

        for key in self._order:
            if key not in visible:
                continue
            input_field = self._fields[key]
            input_field.reset_validation()
            spec = self._specs[key]

            if spec.required and not input_field.value():
                self._fail(input_field, REQUIRED_MESSAGE)
                continue

            if spec.convert is None:
                continue
            try:
                spec.convert(ctx, input_field)
            except FieldError as e:
                self._fail(input_field, str(e))

    def _fail(self, input_field: InputField, message: str) -> None:
        input_field.set_error(message)
        self._has_errors = True
        self._log.info("Field %s: %s", input_field.key, message)

    def _move_to_next_empty(self) -> None:
        visible = self.fields
        while self._index < len(visible) and visible[self._index].value():
            self._index += 1

    def _clamp(self) -> None:
        # Visibility may change when a choice changes.
        if self._index > self.num_fields:
            self._index = self.num_fields
        self._update_focus()

    def _update_focus(self) -> None:
        focused = self.focused_field
        for input_field in self._fields.values():
            if input_field is focused:
                input_field.focus()
            else:
                input_field.blur()

    def _require(self, phase: WizardPhase, action: str) -> None:
        if self._phase != phase:
            raise WizardStateError(f"Cannot {action} while {self._phase}")
