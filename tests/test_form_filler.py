"""Tests for committing values into a live form."""

import asyncio

from fakes import FakeAnalyzer, FakeElement, FakePage, make_profile
from job_applier.browser import Pacer
from job_applier.field_resolver import FieldValueResolver
from job_applier.form_filler import FormFiller, best_option_match, pick_radio_index, radio_group_selector
from job_applier.models import FieldOption, FieldType, FormField, PageAnalysis, PageType

COUNTRY_OPTIONS = (
    FieldOption("", "Select..."),
    FieldOption("us", "United States"),
    FieldOption("ca", "Canada"),
)


def make_filler(analyzer=None):
    return FormFiller(FieldValueResolver(), analyzer=analyzer, pacer=Pacer.instant())


def form(*fields):
    return PageAnalysis(PageType.APPLICATION_FORM, fields=tuple(fields))


def fill(page, *fields, profile=None, filler=None):
    filler = filler or make_filler()
    return asyncio.run(filler.fill_form(page, profile or make_profile(), analysis=form(*fields)))


def test_single_first_name_field():
    page = FakePage()
    element = page.add("#first", FakeElement())
    result = fill(page, FormField("#first", FieldType.TEXT, label="First Name", profile_mapping="firstName"))
    assert result.fields_filled == 1
    assert result.fields_skipped == 0
    assert result.success
    assert element.value == "Jane"
    assert result.values == {"First Name": "Jane"}


def test_email_mapping_is_typed():
    page = FakePage()
    element = page.add("#email", FakeElement(kind="email"))
    fill(page, FormField("#email", FieldType.EMAIL, label="Email", profile_mapping="email"))
    assert element.value == "a@b.com"


def test_existing_text_is_not_overwritten():
    page = FakePage()
    element = page.add("#first", FakeElement(value="Janet"))
    result = fill(page, FormField("#first", FieldType.TEXT, label="First Name", profile_mapping="firstName"))
    assert result.fields_filled == 1
    assert element.value == "Janet"
    assert result.values == {}


def test_select_picks_matching_option():
    page = FakePage()
    element = page.add("#country", FakeElement(kind="select", options=[
        {"value": option.value, "text": option.text} for option in COUNTRY_OPTIONS]))
    result = fill(page, FormField("#country", FieldType.SELECT, label="Country",
                                  options=COUNTRY_OPTIONS, value="united states"))
    assert element.value == "us"
    assert result.values == {"Country": "United States"}


def test_select_reads_options_from_page():
    page = FakePage()
    element = page.add("#country", FakeElement(kind="select", options=[
        {"value": option.value, "text": option.text} for option in COUNTRY_OPTIONS]))
    fill(page, FormField("#country", FieldType.SELECT, label="Country", value="Canada"))
    assert element.value == "ca"


def test_select_without_match_falls_back_to_first_real_option():
    page = FakePage()
    element = page.add("#country", FakeElement(kind="select", options=[
        {"value": option.value, "text": option.text} for option in COUNTRY_OPTIONS]))
    result = fill(page, FormField("#country", FieldType.SELECT, label="Country",
                                  options=COUNTRY_OPTIONS, value="Narnia"))
    assert result.fields_filled == 1
    assert element.value == "us"


def test_checkbox_yes_is_idempotent():
    page = FakePage()
    element = page.add("#agree", FakeElement(kind="checkbox"))
    field = FormField("#agree", FieldType.CHECKBOX, label="I agree to the terms", value="yes")
    filler = make_filler()
    first = fill(page, field, filler=filler)
    second = fill(page, field, filler=filler)
    assert element.checked
    assert element.clicks == 1
    assert first.fields_filled == 1
    assert second.fields_filled == 1


def test_checkbox_no_leaves_unchecked_box_alone():
    page = FakePage()
    element = page.add("#marketing", FakeElement(kind="checkbox"))
    fill(page, FormField("#marketing", FieldType.CHECKBOX, label="Send me offers", value="no"))
    assert not element.checked
    assert element.clicks == 0


def radio_page(*labels):
    page = FakePage()
    radios = [FakeElement(kind="radio", attributes={"value": label.lower(), "name": "relocate"}, label=label)
              for label in labels]
    page.add(radio_group_selector("relocate"), *radios)
    return page, radios


def test_radio_matching_label():
    page, radios = radio_page("Yes", "No")
    result = fill(page, FormField(radio_group_selector("relocate"), FieldType.RADIO,
                                  label="Willing to relocate?", name="relocate", value="No"))
    assert radios[1].checked
    assert not radios[0].checked
    assert result.values == {"Willing to relocate?": "No"}


def test_radio_without_match_picks_first():
    page, radios = radio_page("Yes", "No")
    fill(page, FormField(radio_group_selector("relocate"), FieldType.RADIO,
                         label="Willing to relocate?", name="relocate", value="maybe"))
    assert radios[0].checked
    assert not radios[1].checked


def test_radio_group_already_answered():
    page, radios = radio_page("Yes", "No")
    radios[1].checked = True
    result = fill(page, FormField(radio_group_selector("relocate"), FieldType.RADIO,
                                  label="Willing to relocate?", name="relocate", value="Yes"))
    assert result.fields_filled == 1
    assert radios[0].clicks == 0


def test_two_of_three_fields_is_success():
    page = FakePage()
    page.add("#first", FakeElement())
    page.add("#last", FakeElement())
    page.add("#why", FakeElement(kind="textarea"))
    result = fill(
        page,
        FormField("#first", FieldType.TEXT, label="First Name", profile_mapping="firstName"),
        FormField("#last", FieldType.TEXT, label="Last Name", profile_mapping="lastName"),
        FormField("#why", FieldType.TEXTAREA, label="Why us?", required=True),
    )
    assert result.fields_filled == 2
    assert result.errors == ["Failed to fill Why us?: no value for required field"]
    assert result.success


def test_all_fields_erroring_is_failure():
    page = FakePage()
    page.add("#q1", FakeElement(kind="textarea"))
    page.add("#q2", FakeElement(broken=True))
    result = fill(
        page,
        FormField("#q1", FieldType.TEXTAREA, label="Why us?", required=True),
        FormField("#q2", FieldType.TEXT, label="First Name", profile_mapping="firstName"),
    )
    assert result.fields_filled == 0
    assert len(result.errors) == 2
    assert result.errors[1].startswith("Failed to fill First Name: Element is detached")
    assert not result.success


def test_missing_and_hidden_fields_are_skipped():
    page = FakePage()
    page.add("#hidden", FakeElement(visible=False))
    result = fill(
        page,
        FormField("#absent", FieldType.TEXT, label="First Name", profile_mapping="firstName"),
        FormField("#hidden", FieldType.TEXT, label="Last Name", profile_mapping="lastName"),
    )
    assert result.fields_skipped == 2
    assert result.fields_filled == 0
    assert result.success


def test_optional_field_without_value_is_skipped():
    page = FakePage()
    page.add("#why", FakeElement(kind="textarea"))
    result = fill(page, FormField("#why", FieldType.TEXTAREA, label="Anything else?"))
    assert result.fields_skipped == 1
    assert result.errors == []


def test_resume_upload(tmp_path):
    resume = tmp_path / "resume.pdf"
    resume.write_bytes(b"%PDF-1.4")
    page = FakePage()
    element = page.add("#resume", FakeElement(kind="file", visible=False))
    result = fill(page, FormField("#resume", FieldType.FILE, label="Resume", profile_mapping="resumePath"),
                  profile=make_profile(resume_path=str(resume)))
    assert element.files == str(resume)
    assert result.fields_filled == 1


def test_missing_resume_file_is_an_error(tmp_path):
    page = FakePage()
    page.add("#resume", FakeElement(kind="file"))
    result = fill(page, FormField("#resume", FieldType.FILE, label="Resume", profile_mapping="resumePath"),
                  profile=make_profile(resume_path=str(tmp_path / "missing.pdf")))
    assert result.fields_filled == 0
    assert "file not found" in result.errors[0]


def test_no_fields_detected():
    result = fill(FakePage())
    assert result.errors == ["No form fields detected"]
    assert not result.success


def test_analyzes_page_when_no_analysis_given():
    page = FakePage()
    element = page.add("#first", FakeElement())
    analyzer = FakeAnalyzer(form(FormField("#first", FieldType.TEXT, label="First Name")))
    result = asyncio.run(make_filler(analyzer).fill_form(page, make_profile()))
    assert analyzer.calls == 1
    assert element.value == "Jane"
    assert result.fields_filled == 1


def test_best_option_match_ranking():
    assert best_option_match(COUNTRY_OPTIONS, "us").value == "us"
    assert best_option_match(COUNTRY_OPTIONS, "Canada (remote)").value == "ca"
    assert best_option_match(COUNTRY_OPTIONS, "Mars").value == "us"
    assert best_option_match((), "anything") is None


def test_pick_radio_index():
    candidates = [("y", "Yes, I am authorized"), ("n", "No")]
    assert pick_radio_index(candidates, "n") == 1
    assert pick_radio_index(candidates, "yes") == 0
    assert pick_radio_index(candidates, "perhaps") == 0
