"""
Tests for input fields and the InputWizard state machine.
"""

import pytest

from crewcli.core.engine.wizard import (
    REQUIRED_MESSAGE,
    ConversionContext,
    FieldError,
    FieldSpec,
    InputWizard,
    WizardPhase,
    WizardStateError,
    conversion_order,
)
from crewcli.core.models.field import ChoiceInput, FreeFormInput, InputField
from crewcli.core.models.params import ParameterStore, ParameterStoreFrozen

# ── Field Variant Tests ──────────────────────────────────────────────


class TestFreeFormInput:
    def test_typing_needs_focus(self):
        text = FreeFormInput()
        assert text.handle_key("a") is False
        text.focus()
        assert text.handle_key("a") is True
        assert text.value() == "a"

    def test_char_limit(self):
        text = FreeFormInput(char_limit=3, focused=True)
        for char in "abcd":
            text.handle_key(char)
        assert text.value() == "abc"
        text.set_value("wxyz")
        assert text.value() == "wxy"

    def test_editing_keys(self):
        text = FreeFormInput(text="abc", focused=True)
        text.handle_key("backspace")
        assert text.value() == "ab"
        text.handle_key("ctrl+u")
        assert text.value() == ""
        assert text.handle_key("backspace") is False

    def test_named_keys_are_not_typed(self):
        text = FreeFormInput(focused=True)
        assert text.handle_key("left") is False
        assert text.value() == ""


class TestChoiceInput:
    def test_cycles_with_wrap(self):
        choice = ChoiceInput(options=["Read", "Write"], focused=True)
        assert choice.value() == "Read"
        choice.handle_key("right")
        assert choice.value() == "Write"
        choice.handle_key("right")
        assert choice.value() == "Read"
        choice.handle_key("left")
        assert choice.value() == "Write"

    def test_set_value_must_be_an_option(self):
        choice = ChoiceInput(options=["Read", "Write"])
        with pytest.raises(ValueError):
            choice.set_value("Admin")


class TestInputField:
    def test_effective_value(self):
        field = InputField(key="K", title="K", variant=FreeFormInput(), default="dflt")
        assert field.effective_value() == "dflt"
        field.set_value("raw")
        assert field.effective_value() == "raw"
        field.set_converted("conv")
        assert field.effective_value() == "conv"

    def test_reset_validation_keeps_value(self):
        field = InputField(key="K", title="K", variant=FreeFormInput(text="v"))
        field.set_error("bad")
        field.set_info("note")
        field.set_converted("c")
        field.reset_validation()
        assert (field.error, field.info, field.converted) == (None, None, None)
        assert field.value() == "v"


# ── Wizard Tests ─────────────────────────────────────────────────────


def _wizard(specs, presets=None, **kwargs) -> InputWizard:
    return InputWizard(specs, ParameterStore(presets or {}), **kwargs)


class TestWizardValidation:
    def test_required_empty_field(self):
        wizard = _wizard([FieldSpec("NAME", "Name", required=True)])
        assert wizard.submit() is False

        assert wizard.phase == WizardPhase.CONFIRMING
        assert wizard.has_errors
        assert wizard.field("NAME").error == REQUIRED_MESSAGE
        assert wizard.on_edit

        wizard.edit()
        assert wizard.phase == WizardPhase.EDITING
        assert not wizard.has_errors
        assert wizard.field("NAME").error is None
        assert wizard.field("NAME").value() == ""

    def test_proceed_freezes_store(self):
        store = ParameterStore({"NAME": "tower", "EXTRA": "kept"})
        wizard = InputWizard([FieldSpec("NAME", "Name", required=True)], store)
        assert wizard.submit() is True
        assert wizard.on_proceed

        params = wizard.proceed()
        assert wizard.phase == WizardPhase.SUBMITTED
        assert params == {"NAME": "tower", "EXTRA": "kept"}
        with pytest.raises(ParameterStoreFrozen):
            store.set("NAME", "other")

    def test_proceed_blocked_by_errors(self):
        wizard = _wizard([FieldSpec("NAME", "Name", required=True)])
        wizard.submit()
        with pytest.raises(WizardStateError):
            wizard.proceed()

    def test_converted_value_is_stored(self):
        def upper(ctx: ConversionContext, field: InputField) -> None:
            field.set_converted(field.value().upper())

        wizard = _wizard([FieldSpec("NAME", "Name", convert=upper)], {"NAME": "abc"})
        wizard.submit()
        assert wizard.proceed()["NAME"] == "ABC"

    def test_converter_error(self):
        def reject(ctx: ConversionContext, field: InputField) -> None:
            raise FieldError("not allowed")

        wizard = _wizard([FieldSpec("NAME", "Name", convert=reject)], {"NAME": "x"})
        assert wizard.submit() is False
        assert wizard.field("NAME").error == "not allowed"

    def test_default_used_when_empty(self):
        wizard = _wizard([FieldSpec("ZONE", "Zone", default="us-central1-c")])
        wizard.submit()
        assert wizard.proceed()["ZONE"] == "us-central1-c"

    def test_converters_run_in_dependency_order(self):
        calls: list[str] = []

        def record(ctx: ConversionContext, field: InputField) -> None:
            calls.append(field.key)
            ctx.store.set(f"SEEN_{field.key}", ",".join(calls))

        specs = [
            FieldSpec("B", "B", convert=record, after=("A",)),
            FieldSpec("A", "A", convert=record),
            FieldSpec("C", "C", convert=record),
        ]
        wizard = _wizard(specs)
        wizard.submit()
        assert calls == ["A", "B", "C"]
        assert wizard.store["SEEN_B"] == "A,B"

    def test_converter_reads_earlier_field(self):
        def platform(ctx: ConversionContext, field: InputField) -> None:
            field.set_converted(f"id:{field.value()}")

        def permissions(ctx: ConversionContext, field: InputField) -> None:
            if not ctx.field("PLATFORM").converted:
                raise FieldError("need to set platform first")

        specs = [
            FieldSpec("PERMISSIONS", "Permissions", choices=("Read", "Write"),
                      convert=permissions, after=("PLATFORM",)),
            FieldSpec("PLATFORM", "Platform", choices=("gce",), convert=platform),
        ]
        assert _wizard(specs).submit() is True

    def test_scratch_dir_reaches_converters(self, tmp_path):
        seen = []

        def convert(ctx: ConversionContext, field: InputField) -> None:
            seen.append(ctx.scratch_dir)

        _wizard([FieldSpec("A", "A", convert=convert)], scratch_dir=tmp_path).submit()
        assert seen == [tmp_path]


class TestWizardVisibility:
    def _specs(self):
        return [
            FieldSpec("MODE", "Mode", choices=("Read", "Write")),
            FieldSpec("AGE", "Age", required=True, visible=lambda raw: raw.get("MODE") == "Write"),
        ]

    def test_hidden_fields_skip_validation(self):
        wizard = _wizard(self._specs(), {"AGE": "preset"})
        assert wizard.num_fields == 1
        assert wizard.submit() is True
        # The preset stays in the store untouched.
        assert wizard.proceed()["AGE"] == "preset"

    def test_field_appears_when_choice_changes(self):
        wizard = _wizard(self._specs())
        wizard.set_value("MODE", "Write")
        assert [f.key for f in wizard.fields] == ["MODE", "AGE"]
        assert wizard.submit() is False
        assert wizard.field("AGE").error == REQUIRED_MESSAGE


class TestWizardKeys:
    def _specs(self):
        return [
            FieldSpec("A", "A"),
            FieldSpec("B", "B"),
            FieldSpec("C", "C", choices=("x", "y")),
        ]

    def test_initial_focus_is_first_empty_field(self):
        wizard = _wizard(self._specs(), {"A": "filled"})
        assert wizard.focus_index == 1
        assert wizard.focused_field.key == "B"
        assert wizard.focused_field.focused

    def test_tab_wraps(self):
        wizard = _wizard(self._specs())
        wizard.focus(3)
        assert wizard.on_submit
        wizard.handle_key("tab")
        assert wizard.focus_index == 0
        wizard.handle_key("shift+tab")
        assert wizard.focus_index == 3
        wizard.handle_key("up")
        assert wizard.focus_index == 2
        wizard.handle_key("down")
        assert wizard.focus_index == 3

    def test_typing_goes_to_focused_field(self):
        wizard = _wizard(self._specs())
        wizard.type_text("hi")
        wizard.handle_key("tab")
        wizard.type_text("yo")
        assert wizard.field("A").value() == "hi"
        assert wizard.field("B").value() == "yo"

    def test_enter_skips_filled_fields(self):
        wizard = _wizard(self._specs(), {"B": "filled"})
        assert wizard.focus_index == 0
        wizard.handle_key("enter")
        # B is filled and C always has a value.
        assert wizard.on_submit

    def test_enter_on_submit_then_proceed(self):
        wizard = _wizard(self._specs())
        wizard.focus(3)
        assert wizard.handle_key("enter") == WizardPhase.CONFIRMING
        assert wizard.on_proceed
        assert wizard.handle_key("enter") == WizardPhase.SUBMITTED
        assert wizard.store.frozen

    def test_confirming_toggle(self):
        wizard = _wizard(self._specs())
        wizard.submit()
        wizard.handle_key("right")
        assert wizard.on_edit
        wizard.handle_key("left")
        assert wizard.on_proceed
        wizard.handle_key("tab")
        assert wizard.on_edit
        assert wizard.handle_key("enter") == WizardPhase.EDITING
        assert wizard.on_submit

    def test_errors_pin_edit_button(self):
        wizard = _wizard([FieldSpec("A", "A", required=True)])
        wizard.submit()
        wizard.handle_key("left")
        assert wizard.on_edit

    def test_choice_keys(self):
        wizard = _wizard(self._specs())
        wizard.focus(2)
        wizard.handle_key("right")
        assert wizard.field("C").value() == "y"

    def test_focus_requires_editing(self):
        wizard = _wizard(self._specs())
        wizard.submit()
        with pytest.raises(WizardStateError):
            wizard.focus(0)


# ── Dependency Order Tests ───────────────────────────────────────────


class TestConversionOrder:
    def test_stable_order(self):
        specs = [FieldSpec("A", "A"), FieldSpec("B", "B"), FieldSpec("C", "C")]
        assert conversion_order(specs) == ["A", "B", "C"]

    def test_dependencies_first(self):
        specs = [
            FieldSpec("VM", "VM", after=("PROJECT", "ZONE")),
            FieldSpec("ZONE", "Zone"),
            FieldSpec("PROJECT", "Project"),
        ]
        assert conversion_order(specs) == ["ZONE", "PROJECT", "VM"]

    def test_cycle_rejected(self):
        specs = [FieldSpec("A", "A", after=("B",)), FieldSpec("B", "B", after=("A",))]
        with pytest.raises(ValueError, match="cycle"):
            conversion_order(specs)

    def test_unknown_dependency(self):
        with pytest.raises(ValueError, match="unknown"):
            conversion_order([FieldSpec("A", "A", after=("Z",))])

    def test_wizard_rejects_cycle(self):
        specs = [FieldSpec("A", "A", after=("A",))]
        with pytest.raises(ValueError):
            _wizard(specs)


class TestFieldSpec:
    def test_prefill_default(self):
        field = FieldSpec("SA", "SA", default="runner", prefill_default=True).create(None)
        assert field.value() == "runner"

    def test_invalid_choice_preset_ignored(self):
        field = FieldSpec("P", "P", choices=("Read", "Write")).create("Admin")
        assert field.value() == "Read"
