"""Tests for p4_merge_all.vcs.forms."""

import re

import pytest

from conftest import CHANGE_TEMPLATE, CLIENT_SPEC, TEMPLATE_SPEC
from p4_merge_all.vcs.forms import (
    Form,
    build_change_form,
    build_check_spec,
    build_workspace_spec,
    toggle_view_mappings,
)


class TestFormParse:
    """Tests for Form.parse."""

    def test_single_line_fields(self):
        form = Form.parse(CLIENT_SPEC)

        assert form.get("Client") == "merge-ws"
        assert form.get("Options") == "allwrite noclobber nocompress unlocked nomodtime normdir"

    def test_multi_line_field_loses_one_tab(self):
        form = Form.parse(CLIENT_SPEC)

        assert form.lines("View") == [
            "//depot/main/... //merge-ws/main/...",
            "//depot/release/... //merge-ws/release/...",
        ]

    def test_comments_are_skipped(self):
        form = Form.parse(CLIENT_SPEC)

        assert form.format().startswith("Client:\tmerge-ws\n")
        assert "#" not in form.format()

    def test_nested_tab_is_kept(self):
        form = Form.parse("Description:\n\tLatest changes: t\n\t\n\t\tFix\n")

        assert form.lines("Description") == ["Latest changes: t", "", "\tFix"]

    def test_missing_field(self):
        form = Form.parse(CLIENT_SPEC)

        assert form.get("Host") is None
        assert form.get("Host", "none") == "none"
        assert form.lines("AltRoots") == []
        assert "Host" not in form


class TestFormFormat:
    """Tests for Form.format."""

    def test_format_single_and_multi_line(self):
        form = Form()
        form.set("Client", "merge-ws")
        form.set("View", ["//depot/a/... //merge-ws/a/..."])

        assert form.format() == "Client:\tmerge-ws\n\nView:\n\t//depot/a/... //merge-ws/a/...\n"

    def test_parse_format_parse_is_stable(self):
        form = Form.parse(TEMPLATE_SPEC)

        assert Form.parse(form.format()) == form

    def test_set_keeps_position(self):
        form = Form.parse(CLIENT_SPEC)
        form.set("Owner", "someone")

        assert form.format().split("\n\n")[1] == "Owner:\tsomeone"
        assert form.get("Owner") == "someone"

    def test_copy_is_independent(self):
        form = Form.parse(CLIENT_SPEC)
        clone = form.copy()
        clone.set("Client", "other")

        assert form.get("Client") == "merge-ws"


class TestToggleViewMappings:
    """Tests for toggle_view_mappings."""

    def test_matching_enabled_others_disabled(self):
        view = [
            "//depot/main/... //ws/main/...",
            "-//depot/release/... //ws/release/...",
            "//depot/docs/... //ws/docs/...",
        ]
        patterns = [re.compile("//depot/main/"), re.compile("//depot/release/")]

        assert toggle_view_mappings(view, patterns) == [
            "//depot/main/... //ws/main/...",
            "//depot/release/... //ws/release/...",
            "-//depot/docs/... //ws/docs/...",
        ]

    def test_no_patterns_disables_everything(self):
        assert toggle_view_mappings(["//a/... //ws/a/..."], []) == ["-//a/... //ws/a/..."]


class TestBuildWorkspaceSpec:
    """Tests for build_workspace_spec."""

    def test_template_view_with_current_options(self):
        spec = build_workspace_spec(
            Form.parse(CLIENT_SPEC),
            Form.parse(TEMPLATE_SPEC),
            [re.compile("//depot/main/"), re.compile("//depot/release/")],
        )

        assert spec.get("Options") == "allwrite noclobber nocompress unlocked nomodtime normdir"
        assert spec.get("SubmitOptions") == "submitunchanged"
        assert spec.lines("View") == [
            "//depot/main/... //merge-ws/main/...",
            "//depot/release/... //merge-ws/release/...",
            "-//depot/docs/... //merge-ws/docs/...",
        ]


class TestBuildCheckSpec:
    """Tests for build_check_spec."""

    def test_single_mapping_into_client_root(self):
        spec = build_check_spec(Form.parse(CLIENT_SPEC), "//depot/main/...")

        assert spec.lines("View") == ["//depot/main/... //merge-ws/..."]
        assert spec.get("Root") == "/home/merger/ws"

    def test_missing_client_raises(self):
        with pytest.raises(ValueError, match="no Client field"):
            build_check_spec(Form.parse("Root:\t/tmp\n"), "//depot/main/...")


class TestBuildChangeForm:
    """Tests for build_change_form."""

    def test_new_change_with_description(self):
        form = build_change_form(Form.parse(CHANGE_TEMPLATE), "Latest changes: t\n\n$ p4 integrate //a/... //b/...")

        assert form.get("Change") == "new"
        assert form.get("Client") == "merge-ws"
        assert form.get("User") == "merger"
        assert form.lines("Description") == ["Latest changes: t", "", "$ p4 integrate //a/... //b/..."]
        assert "Files" not in form

    def test_formatted_description_is_tab_indented(self):
        form = build_change_form(Form.parse(CHANGE_TEMPLATE), "Latest changes: t")

        assert "Description:\n\tLatest changes: t\n" in form.format()
