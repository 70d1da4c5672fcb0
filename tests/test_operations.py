"""Tests for operation execution and the action summary."""

from unittest.mock import MagicMock

import pytest
from conftest import make_issue

from autotriage.operations import (
    CreateComment,
    UpdateLabels,
    UpdateState,
    UpdateTitle,
    format_action_summary,
    operation_to_dict,
    perform_operation,
)


@pytest.fixture
def client():
    return MagicMock()


class TestPerformOperation:
    """Tests for perform_operation function."""

    def test_update_title(self, client):
        perform_operation(UpdateTitle(new_title="New"), client, make_issue(7), enabled=True)
        client.update_title.assert_called_once_with(7, "New")

    def test_labels_added_in_one_call_then_removed_individually(self, client):
        op = UpdateLabels(to_add=("a", "b"), to_remove=("c", "d"), merged=("a", "b"))
        perform_operation(op, client, make_issue(7), enabled=True)
        client.add_labels.assert_called_once_with(7, ["a", "b"])
        assert [c.args for c in client.remove_label.call_args_list] == [(7, "c"), (7, "d")]

    def test_labels_remove_only(self, client):
        op = UpdateLabels(to_add=(), to_remove=("c",), merged=())
        perform_operation(op, client, make_issue(7), enabled=True)
        client.add_labels.assert_not_called()
        client.remove_label.assert_called_once_with(7, "c")

    def test_comment(self, client):
        perform_operation(CreateComment(body="hello"), client, make_issue(7), enabled=True)
        client.create_comment.assert_called_once_with(7, "hello")

    def test_reopen(self, client):
        issue = make_issue(7, state="closed", state_reason="completed")
        perform_operation(UpdateState(state="open"), client, issue, enabled=True)
        client.update_issue_state.assert_called_once_with(7, "open")

    def test_close_with_reason(self, client):
        perform_operation(UpdateState(state="not_planned"), client, make_issue(7), enabled=True)
        client.update_issue_state.assert_called_once_with(7, "closed", "not_planned")

    def test_dry_run_calls_nothing(self, client, capsys):
        issue = make_issue(7, title="old")
        for op in (
            UpdateTitle(new_title="New"),
            UpdateLabels(to_add=("a",), to_remove=("b",), merged=("a",)),
            CreateComment(body="hello"),
            UpdateState(state="completed"),
        ):
            perform_operation(op, client, issue, enabled=False)

        assert client.method_calls == []
        err = capsys.readouterr().err
        assert err.count("[DRY RUN]") == 4
        assert 'Updating title from "old" to "New"' in err

    def test_unknown_operation(self, client):
        with pytest.raises(TypeError):
            perform_operation(object(), client, make_issue(7), enabled=True)


class TestOperationToDict:
    def test_labels(self):
        op = UpdateLabels(to_add=("a",), to_remove=(), merged=("a",))
        assert operation_to_dict(op) == {
            "kind": "labels",
            "to_add": ["a"],
            "to_remove": [],
            "merged": ["a"],
        }

    def test_state(self):
        assert operation_to_dict(UpdateState(state="open")) == {"kind": "state", "state": "open"}


class TestFormatActionSummary:
    """Tests for format_action_summary function."""

    def test_lines_sorted_by_issue(self):
        actions = {
            42: [
                UpdateTitle(new_title="Fix crash on startup"),
                UpdateLabels(to_add=("enhancement",), to_remove=(), merged=("bug", "enhancement")),
            ],
            7: [CreateComment(body="hi"), UpdateState(state="completed")],
        }
        assert format_action_summary(actions) == [
            "#7: comment, state: completed",
            "#42: title change, labels: +enhancement",
        ]

    def test_removed_labels(self):
        op = UpdateLabels(to_add=("a",), to_remove=("b",), merged=("a",))
        assert format_action_summary({1: [op]}) == ["#1: labels: +a, -b"]

    def test_empty(self):
        assert format_action_summary({}) == []
        assert format_action_summary({3: []}) == []
